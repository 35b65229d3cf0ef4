from .audio_data import AudioFrame, Category, ClassificationResult, ResultBundle

__all__ = ['AudioFrame', 'Category', 'ClassificationResult', 'ResultBundle']
