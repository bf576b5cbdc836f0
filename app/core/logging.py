import logging
import sys


class ContextFormatter(logging.Formatter):
    """Custom formatter that handles optional entity and unit fields."""
    def format(self, record):
        # Add default values for entity and unit if not present
        if not hasattr(record, 'entity'):
            record.entity = '-'
        if not hasattr(record, 'unit'):
            record.unit = '-'
        return super().format(record)


def configure_logging(level: int = logging.INFO) -> None:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(ContextFormatter(
        "%(asctime)s %(levelname)s %(name)s [entity=%(entity)s unit=%(unit)s] - %(message)s"
    ))
    logging.basicConfig(
        level=level,
        handlers=[handler],
    )
