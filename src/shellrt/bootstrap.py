"""Process entry point

Reads configuration from the environment once, then runs the invocation
loop until the process is terminated. Takes no command-line arguments.
"""

from shellrt.config import RuntimeConfig
from shellrt.errors import ConfigError
from shellrt.logger import get_logger, setup_logging
from shellrt.loop import InvocationLoop


logger = get_logger(__name__)


def main() -> int:
    # Default level until the configured one is known
    setup_logging()

    try:
        config = RuntimeConfig.from_env()
    except ConfigError as e:
        logger.error("invalid_configuration", error=str(e))
        return 1

    setup_logging(config.log_level)

    logger.info(
        "runtime_started",
        runtime_api=config.runtime_api,
        handler=config.handler.to_string(),
        task_root=config.task_root,
    )
    InvocationLoop.from_config(config).run()
    return 0
