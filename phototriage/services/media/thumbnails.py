"""缩略图生成流水线

所有任务进入同一个 asyncio.Queue，由唯一的 worker 按 FIFO 顺序逐个处理，
任意时刻最多只有一个解码在进行，以限制内存峰值。

一个任务的处理流程：
1. 解码源文件（图片用 Pillow；视频用 ffmpeg 在固定时间点截取一帧）
2. 按固定宽度等比缩放
3. 以固定质量编码为 JPEG，返回 data URI
4. 如果任务关联了记录，通过记录存储写回 thumbnail 字段

视频任务有超时限制；超时或任何解码错误都只让该任务得到 None，worker 继续处理下一个任务。
"""

from __future__ import annotations

import asyncio
import base64
import io
from pathlib import Path
from typing import Awaitable, Callable, NamedTuple, Optional

from PIL import Image, ImageOps
from loguru import logger

from ...core.ports import RecordStorePort
from .status_manager import set_thumbnail

THUMBNAIL_LOG_PREFIX = "[Thumbnail]"

PreviewDecoder = Callable[[str, bool], Awaitable[Optional[str]]]


class ThumbnailJob(NamedTuple):
    display_uri: str
    is_video: bool
    record_id: str | None
    future: asyncio.Future


def encode_preview(image: Image.Image, width: int, quality: int) -> str:
    """等比缩放到目标宽度并编码为 JPEG data URI"""
    image = ImageOps.exif_transpose(image).convert("RGB")
    w, h = image.size
    scale = (width / w) if w else 1.0
    new_h = max(int(round(h * scale)), 1)
    image = image.resize((width, new_h), Image.Resampling.LANCZOS)
    buf = io.BytesIO()
    image.save(buf, format="JPEG", quality=quality)
    return "data:image/jpeg;base64," + base64.b64encode(buf.getvalue()).decode("ascii")


def render_image_preview(path: Path, width: int, quality: int) -> str:
    """读取图片并生成预览（同步，在线程池中执行）"""
    with Image.open(path) as im:
        im.load()
        return encode_preview(im, width, quality)


async def render_video_preview(
    path: Path,
    width: int,
    quality: int,
    *,
    ffmpeg_path: str = "ffmpeg",
    offset_seconds: float = 1.0,
) -> str:
    """用 ffmpeg 截取指定时间点的一帧并生成预览

    Raises:
        RuntimeError: ffmpeg 退出码非 0 或没有输出帧
    """
    cmd = [
        ffmpeg_path,
        "-v", "error",
        "-ss", f"{offset_seconds:.3f}",
        "-i", str(path),
        "-frames:v", "1",
        "-f", "image2pipe",
        "-vcodec", "png",
        "pipe:1",
    ]
    proc = await asyncio.create_subprocess_exec(
        *cmd,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    try:
        stdout, stderr = await proc.communicate()
    finally:
        # 超时取消时 communicate 会被中断，需要结束子进程
        if proc.returncode is None:
            proc.kill()
            await proc.wait()

    if proc.returncode != 0 or not stdout:
        message = (stderr or b"").decode("utf-8", errors="replace")[-500:]
        raise RuntimeError(f"ffmpeg 截帧失败 (code={proc.returncode}): {message}")

    def _encode() -> str:
        with Image.open(io.BytesIO(stdout)) as frame:
            frame.load()
            return encode_preview(frame, width, quality)

    return await asyncio.to_thread(_encode)


class ThumbnailPipeline:
    """单 worker 的串行缩略图队列"""

    def __init__(
        self,
        store: RecordStorePort | None = None,
        decoder: PreviewDecoder | None = None,
        *,
        resolve_path: Callable[[str], Path] | None = None,
        width: int = 300,
        quality: int = 70,
        frame_offset_seconds: float = 1.0,
        video_timeout_seconds: float = 10.0,
        ffmpeg_path: str = "ffmpeg",
    ):
        self.store = store
        self.decoder = decoder or self._render
        self.resolve_path = resolve_path or Path
        self.width = width
        self.quality = quality
        self.frame_offset_seconds = frame_offset_seconds
        self.video_timeout_seconds = video_timeout_seconds
        self.ffmpeg_path = ffmpeg_path

        self._queue: asyncio.Queue[ThumbnailJob] | None = None
        self._worker: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    def start(self) -> None:
        """启动 worker（重复调用无副作用），必须在事件循环中调用"""
        if self.running:
            return
        if self._queue is None:
            self._queue = asyncio.Queue()
        self._worker = asyncio.create_task(self._worker_loop())
        self._worker.set_name("thumbnail-worker")
        logger.info(f"{THUMBNAIL_LOG_PREFIX} worker 启动")

    def enqueue(self, display_uri: str, is_video: bool, record_id: str | None = None) -> asyncio.Future:
        """提交一个缩略图任务

        Returns:
            asyncio.Future: 完成时得到 data URI，失败或超时时得到 None，不会以异常结束
        """
        self.start()
        future = asyncio.get_running_loop().create_future()
        self._queue.put_nowait(ThumbnailJob(display_uri, is_video, record_id, future))
        logger.trace(f"{THUMBNAIL_LOG_PREFIX} 任务入队: {display_uri} (队列长度: {self._queue.qsize()})")
        return future

    async def join(self) -> None:
        """等待队列中所有任务处理完毕"""
        if self._queue is not None:
            await self._queue.join()

    async def stop(self) -> None:
        """停止 worker，尚未处理的任务得到 None"""
        if self._worker is not None:
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
            self._worker = None

        if self._queue is not None:
            while not self._queue.empty():
                job = self._queue.get_nowait()
                if not job.future.done():
                    job.future.set_result(None)
                self._queue.task_done()
        logger.info(f"{THUMBNAIL_LOG_PREFIX} worker 已停止")

    async def _worker_loop(self) -> None:
        while True:
            job = await self._queue.get()
            try:
                preview = await self._run_job(job)
                if not job.future.done():
                    job.future.set_result(preview)
            except asyncio.CancelledError:
                if not job.future.done():
                    job.future.set_result(None)
                raise
            finally:
                self._queue.task_done()

    async def _run_job(self, job: ThumbnailJob) -> str | None:
        ctx_logger = logger.bind(record_id=job.record_id)
        try:
            if job.is_video:
                preview = await asyncio.wait_for(
                    self.decoder(job.display_uri, True),
                    timeout=self.video_timeout_seconds,
                )
            else:
                preview = await self.decoder(job.display_uri, False)
        except asyncio.TimeoutError:
            ctx_logger.warning(f"{THUMBNAIL_LOG_PREFIX} 视频截帧超时: {job.display_uri}")
            return None
        except Exception as e:
            ctx_logger.warning(f"{THUMBNAIL_LOG_PREFIX} 生成预览失败 {job.display_uri}: {e}")
            return None

        if preview and job.record_id is not None and self.store is not None:
            if set_thumbnail(self.store, job.record_id, preview):
                ctx_logger.debug(f"{THUMBNAIL_LOG_PREFIX} 预览已写回")
        return preview

    async def _render(self, display_uri: str, is_video: bool) -> str:
        path = self.resolve_path(display_uri)
        if is_video:
            return await render_video_preview(
                path,
                self.width,
                self.quality,
                ffmpeg_path=self.ffmpeg_path,
                offset_seconds=self.frame_offset_seconds,
            )
        return await asyncio.to_thread(render_image_preview, path, self.width, self.quality)
