from setuptools import setup, find_packages

setup(
    name="soundsense",
    version="1.0.0",
    description="Streaming audio classification scheduler with pluggable classifier backends",
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    install_requires=[
        "numpy",
        "sounddevice",
        "soundfile",
        "librosa",
    ],
    extras_require={
        "tflite": ["tflite-runtime"],
        "transformers": ["torch", "transformers"],
        "test": ["pytest"],
    },
    python_requires=">=3.9",
)
