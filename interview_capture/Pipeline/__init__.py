# Pipeline module: activation control for a capture session
from .presentation_pipeline import PresentationCapturePipeline, create_default_pipeline

__all__ = ['PresentationCapturePipeline', 'create_default_pipeline']
