# src/device_spec_analyzer/adapters/primary/cli_adapter.py

import argparse
import logging
import os
import signal
import sys
import threading
from typing import Callable, List, Optional, Sequence, TextIO

from device_spec_analyzer.adapters.primary.watcher_adapter import RepositoryWatcher
from device_spec_analyzer.application.message_parsing import MessageParsingService
from device_spec_analyzer.application.message_profiles import MessageProfileService
from device_spec_analyzer.application.similarity import SimilarityCalculator
from device_spec_analyzer.domain.models import Document
from device_spec_analyzer.ports.input_ports import DocumentProcessingInputPort
from device_spec_analyzer.ports.output_ports import DocumentRepositoryPort, PdfTextExtractionPort

logger = logging.getLogger(__name__)

# watch 서브커맨드용 팩토리: (경로, debounce ms, 기존 파일 처리 여부) -> RepositoryWatcher
WatcherFactory = Callable[[str, int, bool], RepositoryWatcher]

MAX_PRINTED_KEYWORDS = 15


def build_arg_parser(default_path: str = "./repository", default_debounce_ms: int = 2000) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="device-spec-analyzer",
        description="의료기기 통신 프로토콜 명세서(PDF) 분석 도구",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    watch = subparsers.add_parser("watch", help="저장소 디렉토리를 감시하며 PDF 변경을 처리합니다")
    watch.add_argument("--path", default=default_path, help=f"감시할 저장소 경로 (기본값: {default_path})")
    watch.add_argument("--debounce-ms", type=int, default=default_debounce_ms,
                       help=f"변경 이벤트 debounce 시간 ms (기본값: {default_debounce_ms})")
    watch.add_argument("--no-existing", action="store_true", help="시작 시 기존 파일을 처리하지 않음")

    analyze = subparsers.add_parser("analyze", help="PDF 파일들을 한 번 처리하고 결과와 유사도 순위를 출력합니다")
    analyze.add_argument("files", nargs="+", help="분석할 PDF 파일 경로")

    messages = subparsers.add_parser("messages", help="PDF 안의 프로토콜 메시지를 분석합니다")
    messages.add_argument("file", help="분석할 PDF 파일 경로")
    return parser


class CommandLineAdapter:
    """
    argparse 기반 1차 어댑터. 입력 포트와 필요한 서비스들을 주입받아 서브커맨드를 실행합니다.
    run() 은 프로세스 종료 코드를 반환합니다 (실패한 파일이 있으면 1).
    """

    def __init__(
        self,
        input_port: DocumentProcessingInputPort,
        repository: DocumentRepositoryPort,
        pdf_extractor: PdfTextExtractionPort,
        watcher_factory: WatcherFactory,
        message_parser: Optional[MessageParsingService] = None,
        similarity_calculator: Optional[SimilarityCalculator] = None,
        default_path: str = "./repository",
        default_debounce_ms: int = 2000,
        out: Optional[TextIO] = None,
    ):
        self._input_port = input_port
        self._repository = repository
        self._pdf_extractor = pdf_extractor
        self._watcher_factory = watcher_factory
        self._message_parser = message_parser or MessageParsingService()
        self._similarity_calculator = similarity_calculator or SimilarityCalculator()
        self._parser = build_arg_parser(default_path, default_debounce_ms)
        self._out = out

    def run(self, argv: Optional[Sequence[str]] = None) -> int:
        args = self._parser.parse_args(argv)
        if args.command == "watch":
            return self.watch(args.path, args.debounce_ms, not args.no_existing)
        if args.command == "analyze":
            return self.analyze(args.files)
        return self.messages(args.file)

    # --- watch ---

    def watch(self, path: str, debounce_ms: int, process_existing: bool,
              stop_event: Optional[threading.Event] = None) -> int:
        stop_event = stop_event or threading.Event()
        watcher = self._watcher_factory(path, debounce_ms, process_existing)

        previous_handler = None
        if threading.current_thread() is threading.main_thread():
            previous_handler = signal.signal(signal.SIGTERM, lambda signum, frame: stop_event.set())

        self._print(f"Watching {os.path.abspath(path)} (Ctrl+C to stop)")
        try:
            watcher.run_until(stop_event)
        except KeyboardInterrupt:
            logger.info("Interrupted, stopping repository watcher")
            watcher.stop()
        finally:
            if previous_handler is not None:
                signal.signal(signal.SIGTERM, previous_handler)
        return 0

    # --- analyze ---

    def analyze(self, files: List[str]) -> int:
        failures = 0
        documents: List[Document] = []

        for file_path in files:
            result = self._input_port.process_document(file_path)
            self._print(f"\n=== {file_path} ===")
            if not result.success:
                failures += 1
                self._print(f"FAILED: {result.error_message}")
                continue

            document = self._repository.get_by_id(result.document_id)
            documents.append(document)
            self._print_document(document, result.processing_time)

        if len(documents) > 1:
            self._print_similarity_ranking(documents)

        return 1 if failures else 0

    def _print_document(self, document: Document, processing_time: float) -> None:
        content = document.content
        self._print(f"Document ID : {document.id}")
        self._print(f"Protocol    : {document.protocol} (version {document.version})")
        if document.manufacturer or document.device_name:
            self._print(f"Device      : {document.manufacturer or '-'} / {document.device_name or '-'}")
        if content is not None:
            self._print(f"Pages/Words : {content.page_count} / {content.word_count}")
            if content.summary:
                self._print(f"Summary     : {content.summary}")
            if content.keywords:
                keywords = content.keywords.split(", ")
                more = f" (+{len(keywords) - MAX_PRINTED_KEYWORDS} more)" if len(keywords) > MAX_PRINTED_KEYWORDS else ""
                self._print(f"Keywords    : {', '.join(keywords[:MAX_PRINTED_KEYWORDS])}{more}")
        self._print(f"Sections    : {len(document.sections)}")
        for section in document.sections:
            self._print(f"  [{section.order_index}] {section.section_type.value}: {section.title or '(untitled)'}")
        self._print(f"Elapsed     : {processing_time:.2f}s")

    def _print_similarity_ranking(self, documents: List[Document]) -> None:
        self._print("\n=== Similarity ranking ===")
        names = {d.id: d.file_name for d in documents}
        for source in documents:
            results = self._similarity_calculator.find_similar_documents(source, documents, threshold=0.0)
            self._print(f"{source.file_name}:")
            for rank, result in enumerate(results, start=1):
                self._print(f"  {rank}. {names.get(result.target_document_id)} "
                            f"overall={result.overall_similarity_score:.3f} "
                            f"keyword={result.keyword_similarity:.3f} "
                            f"structural={result.structural_similarity:.3f} "
                            f"semantic={result.semantic_similarity:.3f}")
                if result.notes:
                    self._print(f"     {result.notes}")

    # --- messages ---

    def messages(self, file_path: str) -> int:
        extraction = self._pdf_extractor.extract_text(file_path)
        if not extraction.success:
            self._print(f"FAILED: {extraction.error_message}")
            return 1

        analysis = self._message_parser.parse_document_messages_advanced(extraction.extracted_text)
        self._print(f"Document type : {analysis.document_type.value}")
        self._print(f"Summary       : {analysis.analysis_summary}")

        for message in analysis.message_types:
            profile = message.profile
            if profile is not None:
                symbol = MessageProfileService.direction_symbol(profile.direction)
                header = f"{message.message_type} {symbol} {profile.name}"
            else:
                header = f"{message.message_type or '(unknown)'} [{message.protocol.value}]"
            count = analysis.message_type_counts.get(message.message_type)
            if count:
                header += f" x{count}"
            self._print(f"\n- {header}")
            if not message.is_valid:
                self._print(f"  errors: {'; '.join(message.errors)}")
            for key, value in message.key_values.items():
                self._print(f"  {key} = {value}")
        return 0

    def _print(self, line: str) -> None:
        print(line, file=self._out or sys.stdout)
