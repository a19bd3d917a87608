# src/device_spec_analyzer/main.py

# .env 파일에서 환경 변수를 로드합니다.
from dotenv import load_dotenv
load_dotenv()

import sys
from dataclasses import dataclass
from typing import List, Optional, Sequence

# config에서 설정 및 로거 가져오기
from device_spec_analyzer.config import logger, settings

# --- 프라이머리 어댑터 ---
from device_spec_analyzer.adapters.primary.cli_adapter import CommandLineAdapter
from device_spec_analyzer.adapters.primary.watcher_adapter import RepositoryWatcher

# --- 애플리케이션 계층 ---
from device_spec_analyzer.application.message_parsing import MessageParsingService
from device_spec_analyzer.application.message_profiles import MessageProfileService
from device_spec_analyzer.application.similarity import SimilarityCalculator
from device_spec_analyzer.application.use_cases import DocumentProcessingUseCase

# --- 세컨더리 어댑터 구현체 ---
from device_spec_analyzer.adapters.secondary.in_memory_repository_adapter import InMemoryDocumentRepository
from device_spec_analyzer.adapters.secondary.pymupdf_extractor_adapter import PyMuPdfExtractorAdapter
from device_spec_analyzer.adapters.secondary.parsers.astm_parser_adapter import AstmParserAdapter
from device_spec_analyzer.adapters.secondary.parsers.hl7_parser_adapter import Hl7ParserAdapter
from device_spec_analyzer.adapters.secondary.parsers.poct1a_parser_adapter import Poct1AParserAdapter
from device_spec_analyzer.ports.output_ports import ProtocolParserPort


@dataclass
class Application:
    """조립이 끝난 구성 요소 묶음."""
    use_case: DocumentProcessingUseCase
    repository: InMemoryDocumentRepository
    pdf_extractor: PyMuPdfExtractorAdapter
    message_parser: MessageParsingService
    similarity_calculator: SimilarityCalculator
    cli: Optional[CommandLineAdapter] = None

    def create_watcher(self, repository_path: Optional[str] = None, debounce_delay_ms: Optional[int] = None,
                       process_existing_files: Optional[bool] = None) -> RepositoryWatcher:
        return RepositoryWatcher(
            processor=self.use_case,
            repository_path=repository_path or settings.REPOSITORY_PATH,
            debounce_delay_ms=settings.DEBOUNCE_DELAY_MS if debounce_delay_ms is None else debounce_delay_ms,
            process_existing_files=(settings.PROCESS_EXISTING_FILES
                                    if process_existing_files is None else process_existing_files),
            supported_extensions=settings.supported_extensions,
            max_workers=settings.PROCESSING_WORKERS,
            wait_for_inflight_on_stop=settings.WAIT_FOR_INFLIGHT_ON_STOP,
        )


def create_application() -> Application:
    """
    시스템의 모든 구성 요소를 조립(Wiring)하여 의존성을 주입합니다.
    이 함수가 헥사고날 아키텍처의 컴포지션 루트 역할을 합니다.
    """
    logger.info("--- Starting Application Assembly ---")

    # PDF 추출 어댑터 생성
    try:
        pdf_extractor = PyMuPdfExtractorAdapter()
        logger.info("- Created PyMuPdfExtractorAdapter instance.")
    except Exception as e:
        logger.error(f"Failed to initialize PyMuPdfExtractorAdapter: {e}", exc_info=True)
        raise RuntimeError(f"Application startup failed: {e}")

    # 문서 저장소 어댑터 생성
    try:
        repository = InMemoryDocumentRepository()
        logger.info("- Created InMemoryDocumentRepository instance.")
    except Exception as e:
        logger.error(f"Failed to initialize InMemoryDocumentRepository: {e}", exc_info=True)
        raise RuntimeError(f"Application startup failed: {e}")

    # 프로토콜 파서 생성 (등록 순서 = 선택 우선순위)
    try:
        protocol_parsers: List[ProtocolParserPort] = [
            Poct1AParserAdapter(),
            AstmParserAdapter(),
            Hl7ParserAdapter(),
        ]
        logger.info(f"- Created protocol parsers: {[p.protocol_name for p in protocol_parsers]}")
    except Exception as e:
        logger.error(f"Failed to initialize protocol parsers: {e}", exc_info=True)
        raise RuntimeError(f"Application startup failed: {e}")

    similarity_calculator = SimilarityCalculator()
    message_parser = MessageParsingService(MessageProfileService())
    logger.info("- Created SimilarityCalculator and MessageParsingService instances.")

    # 유스케이스 생성 및 의존성 주입
    try:
        use_case = DocumentProcessingUseCase(
            pdf_extractor=pdf_extractor,
            repository=repository,
            protocol_parsers=protocol_parsers,
            similarity_calculator=similarity_calculator,
            similarity_threshold=settings.SIMILARITY_THRESHOLD,
        )
        logger.info("- Created DocumentProcessingUseCase instance.")
    except Exception as e:
        logger.error(f"Failed to initialize DocumentProcessingUseCase: {e}", exc_info=True)
        raise RuntimeError(f"Application startup failed: {e}")

    application = Application(
        use_case=use_case,
        repository=repository,
        pdf_extractor=pdf_extractor,
        message_parser=message_parser,
        similarity_calculator=similarity_calculator,
    )
    application.cli = CommandLineAdapter(
        input_port=use_case,
        repository=repository,
        pdf_extractor=pdf_extractor,
        watcher_factory=application.create_watcher,
        message_parser=message_parser,
        similarity_calculator=similarity_calculator,
        default_path=settings.REPOSITORY_PATH,
        default_debounce_ms=settings.DEBOUNCE_DELAY_MS,
    )
    logger.info("- Created CommandLineAdapter instance.")

    logger.info("--- Application Assembly Complete ---")
    return application


def main(argv: Optional[Sequence[str]] = None) -> int:
    try:
        application = create_application()
    except RuntimeError as e:
        logger.critical(f"Application creation failed: {e}")
        return 2
    return application.cli.run(argv)


if __name__ == "__main__":
    sys.exit(main())
