"""
Services for the media transformation engine.

Includes:
- Compilation (filter graphs, subtitle tracks, presets, regions, fonts)
- Execution (scratch space, transcoder, artifact store)
- Pipelines (single edit, merge, auto-enhance planning)
"""

from vedit_engine.services.artifact_store import ArtifactStore, LocalArtifactStore, S3ArtifactStore
from vedit_engine.services.concat_pipeline import ConcatenationPipeline
from vedit_engine.services.enhance_planner import EnhancePlanner
from vedit_engine.services.filter_compiler import FilterCompiler
from vedit_engine.services.region_resolver import RegionResolver
from vedit_engine.services.scratch_space import ScratchSpace
from vedit_engine.services.subtitle_generator import SubtitleGenerator
from vedit_engine.services.transcoder import Transcoder
from vedit_engine.services.transformation_pipeline import TransformationPipeline

__all__ = [
    # Compilation
    "FilterCompiler",
    "SubtitleGenerator",
    "RegionResolver",
    # Execution
    "ScratchSpace",
    "Transcoder",
    "ArtifactStore",
    "S3ArtifactStore",
    "LocalArtifactStore",
    # Pipelines
    "TransformationPipeline",
    "ConcatenationPipeline",
    "EnhancePlanner",
]
