from .pipeline import TransformationPipeline, build_pipeline

__all__ = ["TransformationPipeline", "build_pipeline"]
