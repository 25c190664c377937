from dataclasses import dataclass
from typing import Dict, Iterable, Optional, Set, Tuple

import numpy as np

from config.settings import get_cache_config, get_settings
from config.validators import CacheConfig
from .bounded_cache import BoundedCache
from ..utils.logger import get_logger
from ..utils.threading_utils import ReadWriteLock

logger = get_logger(__name__)

MASK_STORE = "mask"
RESULT_STORE = "result"

# (store name, key)
EntryRef = Tuple[str, str]


@dataclass(frozen=True)
class CacheStats:
    mask_count: int
    result_count: int
    mask_cost_bytes: int
    result_cost_bytes: int
    tracked_images: int

    @property
    def estimated_memory_mb(self) -> float:
        return (self.mask_cost_bytes + self.result_cost_bytes) / (1024 * 1024)

    def to_dict(self) -> dict:
        return {
            'mask_count': self.mask_count,
            'result_count': self.result_count,
            'mask_cost_bytes': self.mask_cost_bytes,
            'result_cost_bytes': self.result_cost_bytes,
            'estimated_memory_mb': round(self.estimated_memory_mb, 2),
            'tracked_images': self.tracked_images,
        }


def result_key(
        image_id: str,
        blur_intensity: float,
        preview_size: Optional[Tuple[int, int]] = None
) -> str:
    if preview_size is None:
        return f"{image_id}_{blur_intensity:.2f}"
    width, height = preview_size
    return f"{image_id}_preview_{int(width)}x{int(height)}_{blur_intensity:.2f}"


class BlurCacheLayer:
    """Bounded mask and result caches with a per-image key index.

    The index (image id -> owned entries) and the owner map (entry ->
    session id) sit behind a reader/writer lock. Every mutation takes the
    index write lock before touching a store, so index and stores never
    disagree about which entries exist.
    """

    def __init__(self, config: Optional[CacheConfig] = None):
        self.config = config or get_cache_config()

        self.masks: BoundedCache[np.ndarray] = BoundedCache(
            MASK_STORE,
            self.config.mask_cache.count_limit,
            self.config.mask_cache.cost_limit_bytes,
        )
        self.results: BoundedCache[np.ndarray] = BoundedCache(
            RESULT_STORE,
            self.config.result_cache.count_limit,
            self.config.result_cache.cost_limit_bytes,
        )
        self._stores = {MASK_STORE: self.masks, RESULT_STORE: self.results}

        self._index_lock = ReadWriteLock()
        self._image_index: Dict[str, Set[EntryRef]] = {}
        self._entry_image: Dict[EntryRef, str] = {}
        self._entry_session: Dict[EntryRef, Optional[str]] = {}

        self._log_events = get_settings().get_logging_config().features.cache_events

        logger.info(
            "blur_cache_initialized",
            mask_count_limit=self.masks.count_limit,
            mask_cost_limit_mb=self.config.mask_cache.cost_limit_mb,
            result_count_limit=self.results.count_limit,
            result_cost_limit_mb=self.config.result_cache.cost_limit_mb,
        )

    def cost_of(self, array: np.ndarray) -> int:
        """Approximate bytes: width * height * bytes_per_pixel for images and masks"""
        height, width = array.shape[:2]
        return int(width) * int(height) * self.config.bytes_per_pixel

    # =========================================================================
    # Masks
    # =========================================================================

    def get_mask(self, image_id: str) -> Optional[np.ndarray]:
        return self.masks.get(image_id)

    def store_mask(self, image_id: str, mask: np.ndarray, session_id: Optional[str] = None) -> bool:
        return self._store(MASK_STORE, image_id, image_id, mask, session_id)

    # =========================================================================
    # Composited results
    # =========================================================================

    def get_result(
            self,
            image_id: str,
            blur_intensity: float,
            preview_size: Optional[Tuple[int, int]] = None
    ) -> Optional[np.ndarray]:
        return self.results.get(result_key(image_id, blur_intensity, preview_size))

    def store_result(
            self,
            image_id: str,
            blur_intensity: float,
            result: np.ndarray,
            preview_size: Optional[Tuple[int, int]] = None,
            session_id: Optional[str] = None
    ) -> bool:
        key = result_key(image_id, blur_intensity, preview_size)
        return self._store(RESULT_STORE, image_id, key, result, session_id)

    def _store(
            self,
            store_name: str,
            image_id: str,
            key: str,
            value: np.ndarray,
            session_id: Optional[str]
    ) -> bool:
        store = self._stores[store_name]
        ref = (store_name, key)

        with self._index_lock.write_locked():
            removed = store.set(key, value, self.cost_of(value))

            self._image_index.setdefault(image_id, set()).add(ref)
            self._entry_image[ref] = image_id
            self._entry_session[ref] = session_id

            for removed_key in removed:
                self._forget((store_name, removed_key))

        stored = key not in removed
        if not stored:
            logger.warning(
                "cache_entry_rejected",
                store=store_name,
                cost_bytes=self.cost_of(value),
                cost_limit_bytes=store.cost_limit,
            )
        elif removed and self._log_events:
            logger.debug("cache_entries_evicted", store=store_name, count=len(removed))

        return stored

    def _forget(self, ref: EntryRef) -> None:
        """Drop index bookkeeping for one entry. Caller holds the write lock."""
        image_id = self._entry_image.pop(ref, None)
        self._entry_session.pop(ref, None)
        if image_id is None:
            return
        refs = self._image_index.get(image_id)
        if refs is not None:
            refs.discard(ref)
            if not refs:
                del self._image_index[image_id]

    def _remove(self, refs: Iterable[EntryRef]) -> int:
        """Delete entries from their stores and the index. Caller holds the write lock."""
        count = 0
        for ref in list(refs):
            store_name, key = ref
            if self._stores[store_name].delete(key):
                count += 1
            self._forget(ref)
        return count

    # =========================================================================
    # Invalidation
    # =========================================================================

    def clear_all(self) -> None:
        with self._index_lock.write_locked():
            masks = self.masks.clear()
            results = self.results.clear()
            self._image_index.clear()
            self._entry_image.clear()
            self._entry_session.clear()

        if self._log_events:
            logger.info("blur_cache_cleared", masks=masks, results=results)

    def clear_for_image(self, image_id: str) -> int:
        """Remove everything derived from one image"""
        with self._index_lock.write_locked():
            removed = self._remove(self._image_index.get(image_id, ()))

        if self._log_events:
            logger.debug("blur_cache_image_cleared", image_id=image_id, entries=removed)
        return removed

    def clear_for_session(self, session_id: str) -> int:
        with self._index_lock.write_locked():
            refs = [ref for ref, owner in self._entry_session.items() if owner == session_id]
            removed = self._remove(refs)

        if self._log_events:
            logger.debug("blur_cache_session_cleared", session_id=session_id, entries=removed)
        return removed

    def retain_only(self, image_id: Optional[str]) -> int:
        """Remove entries of every image other than ``image_id``"""
        with self._index_lock.write_locked():
            refs = [
                ref
                for other_id, owned in self._image_index.items()
                if other_id != image_id
                for ref in owned
            ]
            removed = self._remove(refs)

        if removed and self._log_events:
            logger.debug("blur_cache_pruned", kept_image_id=image_id, entries=removed)
        return removed

    def handle_memory_pressure(self) -> None:
        """Synchronous full clear; caching resumes on the next store"""
        logger.warning("memory_pressure_detected", **self.get_stats().to_dict())
        self.clear_all()

    # =========================================================================
    # Introspection
    # =========================================================================

    def tracked_images(self) -> Set[str]:
        with self._index_lock.read_locked():
            return set(self._image_index)

    def keys_for_image(self, image_id: str) -> Set[EntryRef]:
        with self._index_lock.read_locked():
            return set(self._image_index.get(image_id, ()))

    def session_of(self, store_name: str, key: str) -> Optional[str]:
        with self._index_lock.read_locked():
            return self._entry_session.get((store_name, key))

    def get_stats(self) -> CacheStats:
        with self._index_lock.read_locked():
            return CacheStats(
                mask_count=len(self.masks),
                result_count=len(self.results),
                mask_cost_bytes=self.masks.total_cost,
                result_cost_bytes=self.results.total_cost,
                tracked_images=len(self._image_index),
            )
