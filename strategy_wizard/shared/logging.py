from __future__ import annotations

import logging

import structlog


def setup_logging(
    reset_handlers: bool = True,
    console_output: bool = True,
    json_format: bool = False,
    level: int = logging.INFO,
) -> None:
    if reset_handlers:
        for h in logging.root.handlers[:]:
            logging.root.removeHandler(h)
    processors = [
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.add_log_level,
    ]
    if json_format:
        processors.append(structlog.processors.JSONRenderer())
    elif console_output:
        processors.append(structlog.dev.ConsoleRenderer())
    else:
        processors.append(structlog.processors.KeyValueRenderer(key_order=["event"]))
    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
    )
    logging.basicConfig(level=level)


def get_logger(name: str):  # 型は環境により異なるため明示は省略
    return structlog.get_logger(name)
