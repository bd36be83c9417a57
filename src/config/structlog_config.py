import logging
import sys

import structlog
from structlog.processors import CallsiteParameter, CallsiteParameterAdder

SERVICE_NAME = "reseller_billing"


def _add_service(_, __, event_dict: dict) -> dict:
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def configure_logging(level: str = "INFO", json_logs: bool = False) -> None:
    """
    Configura structlog sobre o logging da stdlib.

    - `json_logs=True`  → JSONRenderer (produção, agregadores de log).
    - `json_logs=False` → ConsoleRenderer colorido (desenvolvimento).

    Chamar uma única vez, no bootstrap do processo, antes de criar o container.
    """
    pre_chain = [
        structlog.contextvars.merge_contextvars,      # operation_id, actor_id...
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        _add_service,
    ]

    final_processor = (
        structlog.processors.JSONRenderer()
        if json_logs
        else structlog.dev.ConsoleRenderer(colors=True)
    )

    structlog.configure(
        processors=[
            *pre_chain,
            CallsiteParameterAdder(
                parameters=[
                    CallsiteParameter.MODULE,
                    CallsiteParameter.FUNC_NAME,
                    CallsiteParameter.LINENO,
                ]
            ),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(level.upper())
        ),
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processor=final_processor,
        foreign_pre_chain=pre_chain,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level.upper())

    # SQLAlchemy é verboso em INFO; mantém só avisos do engine
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.captureWarnings(True)
