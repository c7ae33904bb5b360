"""
Default model weights: download, cache, and resolve paths.

Files are fetched from a HuggingFace repository via huggingface_hub,
which handles caching, resumable downloads, and integrity checks.

Usage:
    from text_ocr.models import registry

    path = registry.get("detector")   # download + resolve
    print(registry.status())          # show what's cached
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

from .errors import ModelLoadError

logger = logging.getLogger(__name__)

HF_REPO = "hpllduck/PaperStructure"


@dataclass(frozen=True)
class ModelFile:
    """A single model file inside the HuggingFace repo."""
    filename: str  # path inside the repo, e.g. "paddle_ocr/det.onnx"
    description: str = ""


# PP-OCRv5 text detection / classification / recognition
OCR_MODELS: Dict[str, ModelFile] = {
    "detector": ModelFile("paddle_ocr/det.onnx", "DB text detector"),
    "classifier": ModelFile("paddle_ocr/cls.onnx", "Text angle classifier"),
    "recognizer": ModelFile("paddle_ocr/rec.onnx", "SVTR text recognizer"),
    "dictionary": ModelFile("paddle_ocr/ppocrv5_dict.txt", "Character dictionary"),
}


class ModelRegistry:
    """Resolves default model files to local paths."""

    def __init__(self, repo_id: str = HF_REPO, files: Optional[Dict[str, ModelFile]] = None):
        self.repo_id = repo_id
        self.files = dict(files or OCR_MODELS)

    def get(self, key: str) -> Path:
        """Return the local path for a model file, downloading if needed.

        Raises:
            KeyError: For an unknown key
            ModelLoadError: If the download fails
        """
        mf = self._resolve(key)
        from huggingface_hub import hf_hub_download

        try:
            local = hf_hub_download(self.repo_id, mf.filename)
        except Exception as exc:
            raise ModelLoadError(
                f"Could not fetch {mf.filename} from {self.repo_id}: {exc}"
            ) from exc
        logger.debug("Resolved %s -> %s", key, local)
        return Path(local)

    def status(self) -> str:
        """Return a human-readable cache report."""
        lines = [
            "Model Registry Status",
            f"Repository: {self.repo_id}",
            "=" * 60,
        ]
        for key, mf in self.files.items():
            cached = self._find_cached(mf)
            mark = "OK" if cached is not None else "MISSING"
            loc = str(cached) if cached is not None else f"hf://{self.repo_id}/{mf.filename}"
            lines.append(f"  [{mark:>7}]  {key:<12} {mf.filename:<32} {loc}")
        return "\n".join(lines)

    def _resolve(self, key: str) -> ModelFile:
        if key not in self.files:
            available = ", ".join(self.files)
            raise KeyError(f"Unknown model file '{key}'. Available: {available}")
        return self.files[key]

    def _find_cached(self, mf: ModelFile) -> Optional[Path]:
        from huggingface_hub import try_to_load_from_cache

        result = try_to_load_from_cache(self.repo_id, mf.filename)
        if isinstance(result, str):
            return Path(result)
        return None


registry = ModelRegistry()
