import uvicorn

from core.bootstrap import boot, build_services
from core.config_manager import get_server_settings
from core.logger import setup_logging
from web.backend.app import create_app


def main():
    """Main entry point: migrate and load data, then serve the data API."""
    setup_logging()

    services = build_services()
    report = boot(services)
    print(
        f"[boot] schema={services.migrations.get_stored_version()} "
        f"year={report.year_schedule.year} points={report.year_schedule.total_year_points}"
    )

    settings = get_server_settings()
    uvicorn.run(create_app(services), host=settings["host"], port=settings["port"])


if __name__ == "__main__":
    main()
