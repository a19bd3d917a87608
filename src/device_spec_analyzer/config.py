# src/device_spec_analyzer/config.py

from pydantic_settings import BaseSettings
import logging
from typing import List

LOGGER_NAME = "device_spec_analyzer"

# 로깅 설정
def setup_logger(level: str = "INFO"):
    logger = logging.getLogger(LOGGER_NAME)
    # 핸들러가 이미 있는지 확인하고 중복 추가 방지
    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    logger.setLevel(getattr(logging, str(level).upper(), logging.INFO))
    # 상위 로거로 전파 방지 (중복 로그 방지)
    logger.propagate = False
    return logger


class Settings(BaseSettings):
    # 감시 대상 저장소 설정
    REPOSITORY_PATH: str = "./repository"
    DEBOUNCE_DELAY_MS: int = 2000          # 같은 파일의 연속 이벤트를 하나로 합치는 대기 시간
    PROCESS_EXISTING_FILES: bool = True    # 시작 시 기존 파일도 처리할지 여부
    SUPPORTED_EXTENSIONS: str = ".pdf"     # 쉼표로 구분

    # 처리 설정
    PROCESSING_WORKERS: int = 4
    WAIT_FOR_INFLIGHT_ON_STOP: bool = True
    SIMILARITY_THRESHOLD: float = 0.1

    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

    @property
    def supported_extensions(self) -> List[str]:
        extensions = []
        for ext in self.SUPPORTED_EXTENSIONS.split(","):
            ext = ext.strip().lower()
            if not ext:
                continue
            extensions.append(ext if ext.startswith(".") else f".{ext}")
        return extensions


settings = Settings()

# 애플리케이션 로거 생성
logger = setup_logger(settings.LOG_LEVEL)
