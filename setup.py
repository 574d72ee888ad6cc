from setuptools import setup, find_packages
import os

# Read the contents of README file
this_directory = os.path.abspath(os.path.dirname(__file__))
try:
    with open(os.path.join(this_directory, 'README.md'), encoding='utf-8') as f:
        long_description = f.read()
except FileNotFoundError:
    long_description = "Shrink Transcode - batch HEVC re-encoding with resolution-based bitrates and VMAF-verified quality"

setup(
    name="shrink-transcode",
    version="1.0.0",
    author="Rallade",
    author_email="rallade@hotmail.com",
    description="Batch HEVC re-encoding with resolution-based bitrates and VMAF-verified quality",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: End Users/Desktop",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Multimedia :: Video :: Conversion",
    ],
    python_requires=">=3.9",
    install_requires=[
        "tqdm>=4.0.0",
        "psutil>=5.0.0",
    ],
    extras_require={
        "dev": [
            "pytest",
        ],
    },
    entry_points={
        "console_scripts": [
            "shrink-transcode=shrink_transcode.cli:main",
            "shrink-transcode-videos=shrink_transcode.cli:main_videos",
            "shrink-transcode-rename=shrink_transcode.cli:main_rename",
        ],
    },
    include_package_data=True,
    zip_safe=False,
)
