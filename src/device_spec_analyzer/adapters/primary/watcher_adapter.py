# src/device_spec_analyzer/adapters/primary/watcher_adapter.py

import logging
import os
import threading
import time
from concurrent import futures
from typing import Callable, Dict, Iterable, List, Optional, Set

from watchdog.events import FileSystemEvent, FileSystemEventHandler, FileSystemMovedEvent
from watchdog.observers import Observer

from device_spec_analyzer.application.use_cases import calculate_file_hash
from device_spec_analyzer.domain.models import FileChangedEvent, FileChangeType
from device_spec_analyzer.ports.input_ports import DocumentProcessingInputPort

logger = logging.getLogger(__name__)

Clock = Callable[[], float]
Listener = Callable[[FileChangedEvent], None]


class ChangeDebouncer:
    """
    경로별 마지막 변경 시각을 모아 두었다가 debounce 구간이 지난 경로만 꺼내 주는 구조.

    시각은 주입된 clock(초 단위, 기본 time.monotonic) 기준입니다.
    모든 접근은 내부 Lock 으로 보호되며, 잠금 구간 안에서는 I/O 를 하지 않습니다.
    """

    def __init__(self, delay_seconds: float, clock: Clock = time.monotonic):
        self._delay = delay_seconds
        self._clock = clock
        self._pending: Dict[str, float] = {}
        self._lock = threading.Lock()

    @property
    def delay(self) -> float:
        return self._delay

    def record(self, path: str, now: Optional[float] = None) -> None:
        with self._lock:
            self._pending[path] = self._clock() if now is None else now

    def flush_due(self, now: Optional[float] = None) -> List[str]:
        """now - delay 이전에 마지막으로 변경된 경로들을 제거하고 반환합니다."""
        now = self._clock() if now is None else now
        cutoff = now - self._delay
        with self._lock:
            due = [path for path, changed_at in self._pending.items() if changed_at <= cutoff]
            for path in due:
                del self._pending[path]
        return due

    def next_due_in(self, now: Optional[float] = None) -> Optional[float]:
        """가장 이른 대기 항목이 만료될 때까지 남은 초. 대기 항목이 없으면 None."""
        now = self._clock() if now is None else now
        with self._lock:
            if not self._pending:
                return None
            earliest = min(self._pending.values())
        return max(0.0, earliest + self._delay - now)

    def pending_paths(self) -> List[str]:
        with self._lock:
            return list(self._pending)

    def __len__(self) -> int:
        with self._lock:
            return len(self._pending)


class _RepositoryEventHandler(FileSystemEventHandler):
    """watchdog 이벤트를 RepositoryWatcher.record_change 로 전달하는 핸들러."""

    def __init__(self, watcher: "RepositoryWatcher"):
        super().__init__()
        self._watcher = watcher

    def on_created(self, event: FileSystemEvent) -> None:
        self._record(event, event.src_path)

    def on_modified(self, event: FileSystemEvent) -> None:
        self._record(event, event.src_path)

    def on_deleted(self, event: FileSystemEvent) -> None:
        self._record(event, event.src_path)

    def on_moved(self, event: FileSystemMovedEvent) -> None:
        # 이전 경로와 새 경로 모두 등록; 변경 유형은 flush 시점에 다시 판정
        self._record(event, event.src_path)
        self._record(event, event.dest_path)

    def _record(self, event: FileSystemEvent, path) -> None:
        if event.is_directory:
            return
        try:
            path = os.fsdecode(path)
            if self._watcher.is_supported(path):
                self._watcher.record_change(path)
                logger.debug(f"File change detected: {path} ({event.event_type})")
        except Exception as e:
            logger.error(f"Error handling file change for {path}: {e}")


class RepositoryWatcher:
    """
    저장소 디렉토리를 감시하며 PDF 변경을 debounce 한 뒤 문서 처리 유스케이스로 전달하는 1차 어댑터.

    - watchdog Observer 스레드는 대기 맵에 (경로, 시각) 만 기록합니다.
    - 하나의 threading.Timer 가 가장 이른 대기 항목의 만료 시각에 맞춰 재설정되며,
      만료된 경로를 꺼내 ThreadPoolExecutor 로 비동기 처리합니다.
    - 같은 경로는 동시에 두 번 처리되지 않습니다. 기존 파일 스캔과 변경 처리가 같은 임대(in-flight) 집합을 쓰며,
      처리 중 flush 된 경로는 새 시각으로 다시 대기합니다.
    - stop() 은 여러 번 호출해도 안전하며, 이미 제출된 처리 작업은 취소하지 않습니다.
      stop() 이후의 제출은 거부되고 해당 경로는 대기열에 남습니다.
    """

    def __init__(
        self,
        processor: DocumentProcessingInputPort,
        repository_path: str,
        debounce_delay_ms: int = 2000,
        process_existing_files: bool = True,
        supported_extensions: Iterable[str] = (".pdf",),
        max_workers: int = 4,
        wait_for_inflight_on_stop: bool = True,
        clock: Clock = time.monotonic,
        on_file_added: Optional[Listener] = None,
        on_file_changed: Optional[Listener] = None,
        on_file_deleted: Optional[Listener] = None,
    ):
        self._processor = processor
        self.repository_path = repository_path
        self._process_existing_files = process_existing_files
        self._extensions = tuple(e.lower() for e in supported_extensions)
        self._max_workers = max(1, max_workers)
        self._wait_on_stop = wait_for_inflight_on_stop
        self._clock = clock
        self._debouncer = ChangeDebouncer(debounce_delay_ms / 1000.0, clock)

        self.on_file_added = on_file_added
        self.on_file_changed = on_file_changed
        self.on_file_deleted = on_file_deleted

        self._state_lock = threading.Lock()
        self._in_flight: Set[str] = set()
        self._timer: Optional[threading.Timer] = None
        self._observer: Optional[Observer] = None
        self._executor: Optional[futures.ThreadPoolExecutor] = None
        self._futures: Set[futures.Future] = set()
        self._running = False
        # stop() 이후에는 start() 전까지 새 작업을 받지 않음
        self._stopped = False

        logger.info(f"RepositoryWatcher initialized. Path: {repository_path}, "
                    f"debounce: {debounce_delay_ms}ms, extensions: {list(self._extensions)}")

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def debouncer(self) -> ChangeDebouncer:
        return self._debouncer

    def is_supported(self, path: str) -> bool:
        return os.path.splitext(path)[1].lower() in self._extensions

    # --- 생명주기 ---

    def start(self) -> None:
        with self._state_lock:
            if self._running:
                logger.warning("Repository watcher is already running")
                return

            if not os.path.isdir(self.repository_path):
                os.makedirs(self.repository_path, exist_ok=True)
                logger.info(f"Created repository directory: {self.repository_path}")

            self._observer = self._start_observer()
            self._running = True
            self._stopped = False

        logger.info(f"Repository watcher started. Monitoring: {self.repository_path}")

        if self._process_existing_files:
            self.scan_existing_files()
        self._schedule_flush()

    def stop(self) -> None:
        with self._state_lock:
            was_running, self._running = self._running, False
            self._stopped = True
            observer, self._observer = self._observer, None
            timer, self._timer = self._timer, None
            executor, self._executor = self._executor, None

        if not was_running and executor is None:
            return
        if timer is not None:
            timer.cancel()
        if observer is not None:
            try:
                observer.stop()
                observer.join()
            except Exception as e:
                logger.error(f"Error stopping file system observer: {e}")
        if executor is not None:
            executor.shutdown(wait=self._wait_on_stop)
        if was_running:
            logger.info("Repository watcher stopped")

    def run_until(self, stop_event: threading.Event, poll_interval: float = 0.5) -> None:
        """stop_event 가 설정될 때까지 감시를 계속한 뒤 정상 종료합니다."""
        self.start()
        try:
            while not stop_event.wait(poll_interval):
                self.check_observer()
        finally:
            self.stop()

    # --- 변경 기록 / flush ---

    def record_change(self, path: str, now: Optional[float] = None) -> None:
        self._debouncer.record(path, now)
        self._schedule_flush()

    def scan_existing_files(self) -> int:
        """
        저장소의 기존 파일들을 찾아 새 문서로 제출합니다.
        이미 처리 중인 경로는 건너뜁니다. 제출한 파일 수를 반환합니다.
        """
        found = []
        try:
            for root, _, files in os.walk(self.repository_path):
                found.extend(os.path.join(root, name) for name in files if self.is_supported(name))
        except OSError as e:
            logger.error(f"Error scanning for existing files in repository: {e}")
            return 0

        logger.info(f"Found {len(found)} existing files in repository")
        submitted = 0
        for path in found:
            if not self._acquire(path):
                logger.debug(f"File already processing, skipped in scan: {path}")
                continue
            if not self._submit(self._process_existing, path):
                self._release(path)
                continue
            submitted += 1
        return submitted

    def flush(self, now: Optional[float] = None) -> List[str]:
        """
        debounce 구간이 지난 경로들을 처리 작업으로 제출합니다.

        Args:
            now: 기준 시각 (clock 단위). None 이면 clock() 을 사용합니다.

        Returns:
            이번 호출에서 제출된 경로 목록. 처리 중이거나 감시자가 멈춰 있어
            다시 대기열에 넣은 경로는 포함되지 않습니다.
        """
        now = self._clock() if now is None else now
        dispatched = []
        for path in self._debouncer.flush_due(now):
            if not self._acquire(path):
                logger.debug(f"File still processing, re-queued: {path}")
                self._debouncer.record(path, now)
                continue
            if not self._submit(self._dispatch, path):
                self._release(path)
                self._debouncer.record(path, now)
                continue
            dispatched.append(path)
        return dispatched

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """제출된 처리 작업이 모두 끝날 때까지 기다립니다. timeout 안에 끝나면 True."""
        with self._state_lock:
            pending = list(self._futures)
        _, not_done = futures.wait(pending, timeout=timeout)
        return not not_done

    def check_observer(self) -> bool:
        """
        watchdog 감시 스레드(observer/emitter)가 OS 오류 등으로 죽었으면 로그를 남기고 다시 시작합니다.

        Returns:
            감시 스레드를 다시 시작했으면 True.
        """
        with self._state_lock:
            if not self._running or self._observer is None:
                return False
            observer = self._observer
            if observer.is_alive() and all(e.is_alive() for e in observer.emitters):
                return False

            logger.error(f"File system observer for {self.repository_path} is no longer alive; restarting")
            try:
                observer.stop()
            except Exception as e:
                logger.error(f"Error stopping dead file system observer: {e}")
            try:
                self._observer = self._start_observer()
            except OSError as e:
                # 죽은 observer 를 남겨 두어 다음 점검에서 다시 시도
                logger.error(f"Could not restart file system observer: {e}")
                return False
        return True

    def _on_timer(self) -> None:
        if not self._running:
            return
        try:
            self.flush()
        except Exception as e:
            logger.error(f"Error flushing pending file changes: {e}")
        finally:
            with self._state_lock:
                # 그 사이 record_change 가 새 타이머를 걸었으면 그대로 둠
                if self._timer is threading.current_thread():
                    self._timer = None
            self._schedule_flush()

    def _schedule_flush(self) -> None:
        delay = self._debouncer.next_due_in()
        with self._state_lock:
            if not self._running:
                return
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            if delay is None:
                return
            timer = threading.Timer(delay, self._on_timer)
            timer.daemon = True
            self._timer = timer
            timer.start()

    def _start_observer(self) -> Observer:
        # 호출자가 self._state_lock 을 잡고 있어야 함
        observer = Observer()
        observer.schedule(_RepositoryEventHandler(self), self.repository_path, recursive=True)
        observer.start()
        return observer

    def _acquire(self, path: str) -> bool:
        with self._state_lock:
            if path in self._in_flight:
                return False
            self._in_flight.add(path)
            return True

    def _release(self, path: str) -> None:
        with self._state_lock:
            self._in_flight.discard(path)

    def _submit(self, fn: Callable[[str], None], path: str) -> bool:
        with self._state_lock:
            if self._stopped:
                logger.warning(f"Repository watcher is stopped, not processing: {path}")
                return False
            if self._executor is None:
                self._executor = futures.ThreadPoolExecutor(
                    max_workers=self._max_workers, thread_name_prefix="repository-watcher")
            future = self._executor.submit(fn, path)
            self._futures.add(future)
        future.add_done_callback(self._forget_future)
        return True

    def _forget_future(self, future: futures.Future) -> None:
        with self._state_lock:
            self._futures.discard(future)

    # --- 처리 ---

    def _process_existing(self, path: str) -> None:
        try:
            self._processor.process_new_document(path)
            logger.debug(f"Processed existing file: {path}")
            self._notify(self.on_file_added, path, FileChangeType.CREATED)
        except Exception as e:
            logger.warning(f"Failed to process existing file {path}: {e}")
        finally:
            self._release(path)

    def _dispatch(self, path: str) -> None:
        try:
            # 원래 이벤트 종류 대신 현재 파일 존재 여부로 판정
            if os.path.exists(path):
                change_type = FileChangeType.MODIFIED
                self._processor.process_document_update(path)
                self._notify(self.on_file_changed, path, change_type)
            else:
                change_type = FileChangeType.DELETED
                self._processor.process_document_deletion(path)
                self._notify(self.on_file_deleted, path, change_type)
            logger.info(f"Processed file change: {path} ({change_type.value})")
        except Exception as e:
            logger.error(f"Error processing file change for {path}: {e}")
        finally:
            self._release(path)

    def _notify(self, listener: Optional[Listener], path: str, change_type: FileChangeType) -> None:
        if listener is None:
            return
        try:
            listener(self._build_event(path, change_type))
        except Exception as e:
            logger.error(f"File change listener failed for {path}: {e}")

    @staticmethod
    def _build_event(path: str, change_type: FileChangeType) -> FileChangedEvent:
        event = FileChangedEvent(file_path=path, change_type=change_type)
        if os.path.exists(path):
            try:
                event.file_size = os.path.getsize(path)
                event.file_hash = calculate_file_hash(path)
            except OSError as e:
                logger.warning(f"Could not get file info for {path}: {e}")
        return event
