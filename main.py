import logging

from markme.client import ApiClient
from markme.storage import create_folders, load_settings
from markme.ui import run_app


def main():
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    settings = load_settings()
    create_folders(settings["exports_folder"])
    client = ApiClient(settings["api_base_url"], timeout=settings["request_timeout"])
    run_app(client, settings)

if __name__ == "__main__":
    main()
