"""测试用的内存端口实现"""

from pathlib import Path

from phototriage.core.models import MediaRecord, RecordStatus
from phototriage.core.ports import FileInfo, PermissionState, RecordNotFoundError


CAMERA = "DCIM/Camera"
PENDING = "Pictures/PhotoTriage/Pending"
COMPLETED = "Pictures/PhotoTriage/Completed"


class FakeFileSystem:
    """内存文件系统，记录每次文件操作并支持注入故障

    get_uri / resolve 不算文件操作，不会记录到 calls 中。
    """

    def __init__(self):
        self.files: dict[str, bytes] = {}
        self.mtimes: dict[str, float] = {}
        self.dirs: set[str] = set()
        self.calls: list[tuple] = []
        self.failures: dict[str, set[str]] = {}

    def add(self, path: str, data: bytes = b"", mtime: float = 1000.0) -> None:
        self.files[path] = data
        self.mtimes[path] = mtime
        self.dirs.add(path.rsplit("/", 1)[0])

    def fail(self, op: str, path: str = "*") -> None:
        """让指定操作在指定路径（默认所有路径）上抛出 OSError"""
        self.failures.setdefault(op, set()).add(path)

    def names_in(self, folder: str) -> list[str]:
        return [p.rsplit("/", 1)[1] for p in self.files if p.rsplit("/", 1)[0] == folder]

    def ops(self, *names: str) -> list[tuple]:
        return [c for c in self.calls if c[0] in names]

    def _check(self, op: str, *paths: str) -> None:
        self.calls.append((op, *paths))
        targets = self.failures.get(op, set())
        if "*" in targets or any(p in targets for p in paths):
            raise OSError(f"injected {op} failure: {', '.join(paths)}")

    async def mkdir(self, path: str) -> None:
        self._check("mkdir", path)
        self.dirs.add(path)

    async def readdir(self, path: str) -> list[str]:
        self._check("readdir", path)
        if path not in self.dirs:
            raise FileNotFoundError(path)
        return self.names_in(path)

    async def stat(self, path: str) -> FileInfo:
        self._check("stat", path)
        if path not in self.files:
            raise FileNotFoundError(path)
        return FileInfo(size=len(self.files[path]), modified_time=self.mtimes.get(path, 1000.0))

    async def copy(self, source: str, destination: str) -> None:
        self._check("copy", source, destination)
        if source not in self.files:
            raise FileNotFoundError(source)
        self.add(destination, self.files[source], self.mtimes.get(source, 1000.0))

    async def delete(self, path: str) -> None:
        self._check("delete", path)
        if path not in self.files:
            raise FileNotFoundError(path)
        del self.files[path]
        self.mtimes.pop(path, None)

    async def read(self, path: str) -> bytes:
        self._check("read", path)
        if path not in self.files:
            raise FileNotFoundError(path)
        return self.files[path]

    async def write(self, path: str, data: bytes) -> None:
        self._check("write", path)
        self.add(path, data)

    async def get_uri(self, path: str) -> str:
        return f"fake://{path}"

    def resolve(self, uri: str) -> Path:
        return Path(uri.removeprefix("fake://"))


class FakePermission:

    def __init__(self, status: PermissionState = PermissionState.GRANTED, after_request: PermissionState | None = None):
        self.status = status
        self.after_request = after_request
        self.requests = 0

    async def check_status(self) -> PermissionState:
        return self.status

    async def request(self) -> PermissionState:
        self.requests += 1
        if self.after_request is not None:
            self.status = self.after_request
        return self.status


class FakeMediaIndex:

    def __init__(self, fail: bool = False):
        self.scanned: list[str] = []
        self.fail = fail

    async def scan_file(self, path: str) -> None:
        if self.fail:
            raise RuntimeError("media index unavailable")
        self.scanned.append(path)



def _copy(record: MediaRecord) -> MediaRecord:
    return MediaRecord.model_validate(record.model_dump())


class FakeRecordStore:
    """字典实现的记录存储，读写都返回副本"""

    def __init__(self):
        self.records: dict[str, MediaRecord] = {}

    def get(self, record_id: str) -> MediaRecord | None:
        record = self.records.get(record_id)
        return _copy(record) if record is not None else None

    def insert(self, record: MediaRecord) -> MediaRecord:
        self.records[record.id] = _copy(record)
        return _copy(record)

    def update(self, record_id: str, transform) -> MediaRecord:
        if record_id not in self.records:
            raise RecordNotFoundError(record_id)
        draft = _copy(self.records[record_id])
        transform(draft)
        self.records[record_id] = draft
        return _copy(draft)

    def enumerate(self, status: RecordStatus | None = None) -> list[MediaRecord]:
        records = [r for r in self.records.values() if status is None or r.status == status]
        return [_copy(r) for r in sorted(records, key=lambda r: r.modified_time, reverse=True)]

    def count(self, status: RecordStatus | None = None) -> int:
        return len(self.enumerate(status))
