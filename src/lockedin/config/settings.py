from dataclasses import dataclass
import logging
import os
from dotenv import load_dotenv


load_dotenv()


@dataclass(frozen=True)
class Settings:
    default_total_marks: float = float(os.getenv("LOCKEDIN_DEFAULT_TOTAL_MARKS", "100"))
    grade_round_to: int = int(os.getenv("LOCKEDIN_GRADE_ROUND_TO", "2"))
    log_level: str = os.getenv("LOCKEDIN_LOG_LEVEL", "WARNING").upper()


settings = Settings()


def configure_logging(level: str | None = None) -> None:
    logging.basicConfig(
        level=level or settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
