from session_client.config import Config
from session_client.log import setup_logger

logger = setup_logger(__name__)


def main():
    missing = Config.validate()
    if missing:
        logger.warning("Missing configuration: %s", ", ".join(missing))

    import uvicorn
    uvicorn.run("session_client.server:app", host="127.0.0.1", port=8010, log_level="info")


if __name__ == "__main__":
    main()
