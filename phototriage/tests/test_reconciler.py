"""记录合并 (reconciler.py) 测试

使用内存文件系统和内存SQLite记录存储，验证三个文件夹按优先级合并为记录。
"""

import time
from unittest.mock import MagicMock

import pytest

from phototriage.core.models import RecordStatus
from phototriage.services.media.reconciler import fetch_file_info, filter_by_precedence, reconcile
from phototriage.services.media.status_manager import RecordStore
from phototriage.tests.fakes import CAMERA, COMPLETED, PENDING


async def _run(fake_fs, store, folders, video_extensions, thumbnails=None):
    return await reconcile(
        fake_fs.names_in(CAMERA),
        fake_fs.names_in(PENDING),
        fake_fs.names_in(COMPLETED),
        store=store,
        fs=fake_fs,
        folders=folders,
        video_extensions=video_extensions,
        thumbnails=thumbnails,
    )


class TestFilterByPrecedence:

    def test_exact_names_are_removed_from_lower_folders(self):
        camera, pending, completed = filter_by_precedence(
            ["IMG_1.jpg", "IMG_2.jpg", "IMG_3.jpg"],
            ["IMG_2.jpg", "IMG_3.jpg", "IMG_4.jpg"],
            ["IMG_3.jpg"],
        )
        assert camera == ["IMG_1.jpg"]
        assert pending == ["IMG_2.jpg", "IMG_4.jpg"]
        assert completed == ["IMG_3.jpg"]

    def test_filter_is_case_sensitive(self):
        camera, _, _ = filter_by_precedence(["IMG_1.JPG"], [], ["IMG_1.jpg"])
        assert camera == ["IMG_1.JPG"]


class TestReconcile:

    @pytest.mark.asyncio
    async def test_camera_files_become_camera_records(self, fake_fs, store, folders, video_extensions):
        fake_fs.add(f"{CAMERA}/IMG_1.jpg", b"12345", mtime=2_000)
        fake_fs.add(f"{CAMERA}/VID_1.MP4", b"1", mtime=1_000)

        records = await _run(fake_fs, store, folders, video_extensions)

        assert [r.id for r in records] == ["IMG_1", "VID_1"]
        image = store.get("IMG_1")
        assert image.status == RecordStatus.CAMERA
        assert image.original_name == "IMG_1.jpg"
        assert image.camera_path == f"{CAMERA}/IMG_1.jpg"
        assert image.display_uri == f"fake://{CAMERA}/IMG_1.jpg"
        assert image.size == 5
        assert image.modified_time == 2_000
        assert image.is_video is False

        video = store.get("VID_1")
        assert video.extension == "mp4"
        assert video.original_name == "VID_1.mp4"
        assert video.is_video is True

    @pytest.mark.asyncio
    async def test_camera_and_completed_same_name(self, fake_fs, store, folders, video_extensions):
        """
        Given: 相机和已完成文件夹中都有 IMG_1.jpg
        When: 合并
        Then: 只有一条已完成记录，显示已完成文件夹中的副本
        """
        fake_fs.add(f"{CAMERA}/IMG_1.jpg")
        fake_fs.add(f"{COMPLETED}/IMG_1.jpg")

        records = await _run(fake_fs, store, folders, video_extensions)

        assert len(records) == 1
        record = records[0]
        assert record.status == RecordStatus.COMPLETED
        assert record.completed_path == f"{COMPLETED}/IMG_1.jpg"
        assert record.display_uri == f"fake://{COMPLETED}/IMG_1.jpg"

    @pytest.mark.asyncio
    async def test_pending_overrides_camera(self, fake_fs, store, folders, video_extensions):
        fake_fs.add(f"{CAMERA}/IMG_1.jpg")
        fake_fs.add(f"{PENDING}/IMG_1.jpg")

        await _run(fake_fs, store, folders, video_extensions)

        record = store.get("IMG_1")
        assert record.status == RecordStatus.PENDING
        assert record.pending_path == f"{PENDING}/IMG_1.jpg"
        assert record.display_uri == f"fake://{PENDING}/IMG_1.jpg"

    @pytest.mark.asyncio
    async def test_versioned_pending_copy_merges_with_camera_record(self, fake_fs, store, folders, video_extensions):
        """版本后缀不同的文件名通过了文件名过滤，但按处理顺序归入同一条待处理记录"""
        fake_fs.add(f"{CAMERA}/IMG_1.jpg")
        fake_fs.add(f"{PENDING}/IMG_1~2.jpg")

        records = await _run(fake_fs, store, folders, video_extensions)

        assert len(records) == 1
        record = store.get("IMG_1")
        assert record.status == RecordStatus.PENDING
        assert record.camera_path == f"{CAMERA}/IMG_1.jpg"
        assert record.pending_path == f"{PENDING}/IMG_1~2.jpg"
        assert record.original_name == "IMG_1.jpg"

    @pytest.mark.asyncio
    async def test_display_follows_latest_pending_version(self, fake_fs, store, folders, video_extensions):
        """列表顺序与版本号无关，待处理路径和预览都指向版本号最大的文件"""
        fake_fs.add(f"{PENDING}/IMG_1~3.jpg", b"v3")
        fake_fs.add(f"{PENDING}/IMG_1.jpg", b"v0")
        fake_fs.add(f"{PENDING}/IMG_1~1.jpg", b"v1")

        records = await _run(fake_fs, store, folders, video_extensions)

        assert len(records) == 1
        record = store.get("IMG_1")
        assert record.pending_path == f"{PENDING}/IMG_1~3.jpg"
        assert record.display_uri == f"fake://{PENDING}/IMG_1~3.jpg"
        assert record.size == 2

    @pytest.mark.asyncio
    async def test_case_mismatch_resolved_by_processing_order(self, fake_fs, store, folders, video_extensions):
        fake_fs.add(f"{CAMERA}/IMG_1.JPG")
        fake_fs.add(f"{COMPLETED}/IMG_1.jpg")

        records = await _run(fake_fs, store, folders, video_extensions)

        assert len(records) == 1
        record = store.get("IMG_1")
        assert record.status == RecordStatus.COMPLETED
        assert record.camera_path == f"{CAMERA}/IMG_1.JPG"
        assert record.completed_path == f"{COMPLETED}/IMG_1.jpg"

    @pytest.mark.asyncio
    async def test_pending_only_record_has_canonical_name(self, fake_fs, store, folders, video_extensions):
        fake_fs.add(f"{PENDING}/IMG_7~3.jpg")

        await _run(fake_fs, store, folders, video_extensions)

        record = store.get("IMG_7")
        assert record.original_name == "IMG_7.jpg"
        assert record.camera_path == ""

    @pytest.mark.asyncio
    async def test_rescan_is_idempotent(self, fake_fs, store, folders, video_extensions):
        fake_fs.add(f"{CAMERA}/IMG_1.jpg")
        fake_fs.add(f"{PENDING}/IMG_2.jpg")
        fake_fs.add(f"{COMPLETED}/IMG_3.jpg")

        first = await _run(fake_fs, store, folders, video_extensions)
        second = await _run(fake_fs, store, folders, video_extensions)

        assert [(r.id, r.status) for r in first] == [(r.id, r.status) for r in second]
        assert store.count() == 3

    @pytest.mark.asyncio
    async def test_rescan_follows_external_deletion(self, fake_fs, store, folders, video_extensions):
        """已完成副本在外部被删除后，重新扫描时记录回到相机状态"""
        fake_fs.add(f"{CAMERA}/IMG_1.jpg")
        fake_fs.add(f"{COMPLETED}/IMG_1.jpg")
        await _run(fake_fs, store, folders, video_extensions)
        assert store.get("IMG_1").status == RecordStatus.COMPLETED

        del fake_fs.files[f"{COMPLETED}/IMG_1.jpg"]
        await _run(fake_fs, store, folders, video_extensions)

        record = store.get("IMG_1")
        assert record.status == RecordStatus.CAMERA
        assert record.display_uri == f"fake://{CAMERA}/IMG_1.jpg"

    @pytest.mark.asyncio
    async def test_stat_failure_defaults_to_zero_and_now(self, fake_fs, store, folders, video_extensions):
        fake_fs.add(f"{CAMERA}/IMG_1.jpg", b"abc")
        fake_fs.add(f"{CAMERA}/IMG_2.jpg", b"abc")
        fake_fs.fail("stat", f"{CAMERA}/IMG_1.jpg")

        before = time.time() * 1000
        records = await _run(fake_fs, store, folders, video_extensions)
        after = time.time() * 1000

        assert len(records) == 2
        broken = store.get("IMG_1")
        assert broken.size == 0
        assert before <= broken.modified_time <= after
        assert store.get("IMG_2").size == 3

    @pytest.mark.asyncio
    async def test_store_failure_skips_only_that_file(self, fake_fs, db_session_factory, folders, video_extensions):
        class FlakyStore(RecordStore):
            def insert(self, record):
                if record.id == "IMG_1":
                    raise RuntimeError("disk full")
                return super().insert(record)

        store = FlakyStore(db_session_factory)
        fake_fs.add(f"{CAMERA}/IMG_1.jpg")
        fake_fs.add(f"{CAMERA}/IMG_2.jpg")

        records = await _run(fake_fs, store, folders, video_extensions)

        assert [r.id for r in records] == ["IMG_2"]

    @pytest.mark.asyncio
    async def test_thumbnail_jobs(self, fake_fs, store, folders, video_extensions):
        """新记录入队一次；待处理条目在每次扫描时都重新入队"""
        thumbnails = MagicMock()
        fake_fs.add(f"{CAMERA}/IMG_1.jpg")
        fake_fs.add(f"{PENDING}/IMG_2.jpg")
        fake_fs.add(f"{COMPLETED}/VID_3.mp4")

        await _run(fake_fs, store, folders, video_extensions, thumbnails)

        enqueued = sorted(call.args for call in thumbnails.enqueue.call_args_list)
        assert enqueued == [
            (f"fake://{CAMERA}/IMG_1.jpg", False, "IMG_1"),
            (f"fake://{COMPLETED}/VID_3.mp4", True, "VID_3"),
            (f"fake://{PENDING}/IMG_2.jpg", False, "IMG_2"),
        ]

        thumbnails.reset_mock()
        await _run(fake_fs, store, folders, video_extensions, thumbnails)

        assert [call.args for call in thumbnails.enqueue.call_args_list] == [
            (f"fake://{PENDING}/IMG_2.jpg", False, "IMG_2"),
        ]

    @pytest.mark.asyncio
    async def test_fetch_file_info(self, fake_fs):
        fake_fs.add(f"{CAMERA}/IMG_1.jpg", b"abcd", mtime=42.0)

        info = await fetch_file_info(fake_fs, f"{CAMERA}/IMG_1.jpg")

        assert (info.size, info.modified_time) == (4, 42.0)
