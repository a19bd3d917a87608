# src/device_spec_analyzer/ports/input_ports.py

from abc import ABC, abstractmethod

from device_spec_analyzer.domain.models import ProcessingResult

class DocumentProcessingInputPort(ABC):
    """
    저장소의 PDF 파일 변경을 애플리케이션 코어에 전달하기 위한 입력 포트.
    이 포트는 애플리케이션 계층의 유스케이스(DocumentProcessingUseCase)에 의해 구현되며,
    파일 감시 어댑터와 CLI 어댑터가 이 포트를 통해 코어를 호출합니다.
    """

    @abstractmethod
    def process_new_document(self, file_path: str) -> bool:
        """
        새로 발견된 파일을 처리합니다.

        같은 파일명 또는 같은 내용 해시를 가진 문서가 이미 있으면 아무 것도 하지 않습니다.

        Args:
            file_path: 처리할 PDF 파일 경로.

        Returns:
            파이프라인이 실행되어 성공했으면 True, 중복이거나 실패했으면 False.
        """
        pass

    @abstractmethod
    def process_document_update(self, file_path: str) -> bool:
        """
        변경된 파일을 다시 처리합니다.

        기존 레코드가 없으면 새 문서로 처리하고, 내용 해시가 같으면 건너뜁니다.

        Args:
            file_path: 변경된 PDF 파일 경로.

        Returns:
            처리(또는 건너뛰기)에 성공했으면 True.
        """
        pass

    @abstractmethod
    def process_document_deletion(self, file_path: str) -> bool:
        """
        삭제된 파일에 해당하는 문서 레코드를 제거합니다.

        Args:
            file_path: 삭제된 파일 경로 (파일명으로 문서를 찾습니다).

        Returns:
            제거할 레코드가 있었으면 True.
        """
        pass

    @abstractmethod
    def process_document(self, file_path: str) -> ProcessingResult:
        """
        파일 하나에 대해 전체 처리 파이프라인을 실행합니다.

        Args:
            file_path: 처리할 PDF 파일 경로.

        Returns:
            성공 여부, 문서 ID, 처리 시간, 메타데이터를 담은 ProcessingResult.
            입력/추출 오류는 예외가 아니라 실패 결과로 반환됩니다.
        """
        pass
