import logging
import logging.config
from pathlib import Path

import yaml
from rich.logging import RichHandler

from spotify_tools.config import config

log_config_path = Path(__file__).parent.parent / "log_conf.yaml"
if log_config_path.exists():
    with open(log_config_path) as f:
        logging.config.dictConfig(yaml.safe_load(f))

    # LOG_LEVEL wins over whatever the YAML file declares
    log_level = getattr(logging, config.LOG_LEVEL)
    logging.root.setLevel(log_level)
    for logger_name in ["uvicorn", "uvicorn.error", "fastapi", "spotify_tools"]:
        logging.getLogger(logger_name).setLevel(log_level)
else:
    logging.basicConfig(
        level=getattr(logging, config.LOG_LEVEL),
        format="%(name)s - %(message)s",
        handlers=[
            RichHandler(
                rich_tracebacks=False,
                show_time=True,
                show_level=True,
                show_path=False,
                markup=False,
            )
        ],
    )


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


logger = get_logger("spotify_tools")


def configure_uvicorn_loggers() -> None:
    """Route uvicorn's access log through a RichHandler.

    uvicorn installs its own handlers when the server boots, so this has to
    run from the application lifespan rather than at import time.
    """
    uvicorn_access = logging.getLogger("uvicorn.access")
    uvicorn_access.handlers.clear()
    rich_handler = RichHandler(
        rich_tracebacks=False,
        show_time=True,
        show_level=True,
        show_path=False,
        markup=False,
    )
    rich_handler.setFormatter(logging.Formatter("%(name)s - %(message)s"))
    uvicorn_access.addHandler(rich_handler)
    uvicorn_access.propagate = False
