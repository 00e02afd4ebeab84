"""Pipeline driver converting a docker save bundle into a blob store."""

import asyncio
import functools
import logging
import shutil
import tempfile
from pathlib import Path
from typing import Optional, Union

from .bundle.extract import BundleSource, extract_bundle
from .bundle.metadata import read_index, read_manifest_list
from .bundle.names import first_reference, normalize_image_name
from .core.types import BlobDescriptor, ConversionConfig, PipelineStage, SourceManifestEntry
from .exceptions import BlobStoreError, CleanupWarning, PipelineError
from .store.config import relocate_config
from .store.layers import process_layer
from .store.layout import BlobStoreLayout, prepare_layout, validate_image_name
from .store.manifest import assemble_manifest, persist_manifest

logger = logging.getLogger(__name__)

SOURCE_PREFIX = "image_blob_store_src_"
DEST_PREFIX = "image_blob_store_dest_"

# Step attempted from each state, used to name the failing stage
_NEXT_STEP = {
    PipelineStage.INIT: "metadata",
    PipelineStage.METADATA_LOADED: "layout",
    PipelineStage.LAYOUT_READY: "blobs",
    PipelineStage.BLOBS_RELOCATED: "manifest",
    PipelineStage.MANIFEST_WRITTEN: "finalize",
}


async def remove_tree(path: Union[str, Path]) -> bool:
    """Best-effort recursive delete; failures are logged, never raised.

    Returns:
        True if the directory is gone afterwards
    """
    loop = asyncio.get_event_loop()
    try:
        await loop.run_in_executor(None, shutil.rmtree, path)
    except FileNotFoundError:
        return True
    except OSError as e:
        logger.warning(
            f"{CleanupWarning.__name__}: can't delete temporary directory {path}: {e}"
        )
        return False
    return True


class PipelineDriver:
    """Runs one conversion through its stages.

    ``Init -> MetadataLoaded -> LayoutReady -> BlobsRelocated ->
    ManifestWritten -> Done``, or ``Failed`` from any of them.
    """

    def __init__(self, config: Optional[ConversionConfig] = None) -> None:
        self.config = config or ConversionConfig()
        self.stage = PipelineStage.INIT
        self.failed_step: Optional[str] = None
        self.image_name: Optional[str] = None
        self.layout: Optional[BlobStoreLayout] = None

    def _advance(self, stage: PipelineStage) -> None:
        logger.info(f"Pipeline stage: {self.stage.value} -> {stage.value}")
        self.stage = stage

    async def run(
        self,
        source_dir: Union[str, Path],
        dest_root: Union[str, Path],
        owns_source: bool = False,
    ) -> Path:
        """Convert the bundle in source_dir into ``<dest_root>/work``.

        The source directory is removed afterwards only when it is a staging
        directory owned by this run (``owns_source``) and
        ``config.cleanup_source`` is set.

        Args:
            source_dir: Directory holding the extracted bundle
            dest_root: Destination staging root
            owns_source: True if source_dir was created for this run

        Returns:
            Path of the finished ``work`` directory

        Raises:
            PipelineError: If any stage fails; ``cause`` holds the component error
            RuntimeError: If the driver has already been run
        """
        if self.stage is not PipelineStage.INIT:
            raise RuntimeError(f"Pipeline already ran (stage: {self.stage.value})")

        source = Path(source_dir)
        remove_source = owns_source and self.config.cleanup_source
        try:
            entry = await self._load_metadata(source)
            self._advance(PipelineStage.METADATA_LOADED)

            self.layout = await prepare_layout(dest_root, self.image_name, self.config)
            self._advance(PipelineStage.LAYOUT_READY)

            config_descriptor, layer_descriptors = await self._relocate_blobs(
                source, entry
            )
            self._advance(PipelineStage.BLOBS_RELOCATED)

            manifest = assemble_manifest(config_descriptor, layer_descriptors, self.config)
            await persist_manifest(manifest, self.layout)
            self._advance(PipelineStage.MANIFEST_WRITTEN)
        except Exception as e:
            self.failed_step = _NEXT_STEP.get(self.stage, self.stage.value)
            self.stage = PipelineStage.FAILED
            logger.error(f"Conversion failed during {self.failed_step}: {e}")
            if remove_source:
                await remove_tree(source)
            raise PipelineError(self.failed_step, e) from e

        if remove_source:
            await remove_tree(source)
        self._advance(PipelineStage.DONE)
        return self.layout.work_root

    async def _load_metadata(self, source: Path) -> SourceManifestEntry:
        index = await read_index(source)
        reference, tag = first_reference(index)
        image_name = normalize_image_name(reference)
        validate_image_name(image_name)
        self.image_name = image_name
        logger.info(f"Image {reference}:{tag} -> {self.image_name}")

        entries = await read_manifest_list(source)
        if len(entries) > 1:
            logger.warning(
                f"Bundle holds {len(entries)} manifests, only the first is converted"
            )
        return entries[0]

    async def _relocate_blobs(
        self, source: Path, entry: SourceManifestEntry
    ) -> tuple[BlobDescriptor, list[BlobDescriptor]]:
        """Relocate config and layers concurrently.

        Results come back in argument order, so layer descriptors keep the
        source order whatever order their I/O finishes in. Every task is
        awaited before the first failure (in source order) is raised.
        """
        semaphore = asyncio.Semaphore(self.config.max_concurrency)

        async def bounded_layer(layer_path: str) -> BlobDescriptor:
            async with semaphore:
                return await process_layer(source, self.layout, layer_path, self.config)

        results = await asyncio.gather(
            relocate_config(source, self.layout, entry.config, self.config),
            *(bounded_layer(layer_path) for layer_path in entry.layers),
            return_exceptions=True,
        )

        for result in results:
            if isinstance(result, BaseException):
                raise result

        config_descriptor, *layer_descriptors = results
        return config_descriptor, layer_descriptors


async def convert_bundle(
    source: BundleSource,
    dest_root: Optional[Union[str, Path]] = None,
    config: Optional[ConversionConfig] = None,
) -> Path:
    """docker save tar 아카이브를 콘텐츠 주소 기반 blob 저장소로 변환합니다.

    임시 소스 디렉토리에 아카이브를 풀고, 파이프라인을 실행한 뒤
    소스 디렉토리를 정리합니다 (cleanup_source=False가 아닌 경우).

    Args:
        source: docker save tar 파일 경로 또는 바이너리 스트림 (예: sys.stdin.buffer)
        dest_root: 결과를 쓸 디렉토리 (선택사항, 없으면 임시 디렉토리 생성)
        config: 변환 설정 (선택사항)

    Returns:
        Path: 완성된 work 디렉토리 경로 (예: "/tmp/image_blob_store_dest_x/work")

    Raises:
        PipelineError: 추출 또는 변환 단계 실패 시

    Examples:
        # tar 파일 변환
        work = await convert_bundle("nginx.tar")

        # 표준 입력에서 읽기
        work = await convert_bundle(sys.stdin.buffer, dest_root="./out")
    """
    config = config or ConversionConfig()
    loop = asyncio.get_event_loop()

    source_dir = Path(
        await loop.run_in_executor(None, functools.partial(tempfile.mkdtemp, prefix=SOURCE_PREFIX))
    )
    try:
        await extract_bundle(source, source_dir)
    except BlobStoreError as e:
        if config.cleanup_source:
            await remove_tree(source_dir)
        raise PipelineError("extract", e) from e

    if dest_root is None:
        dest_root = await loop.run_in_executor(
            None, functools.partial(tempfile.mkdtemp, prefix=DEST_PREFIX)
        )

    driver = PipelineDriver(config)
    return await driver.run(source_dir, dest_root, owns_source=True)
