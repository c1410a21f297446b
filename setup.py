import pathlib
import re

from setuptools import setup, find_packages


def read_version():
    version_path = pathlib.Path(__file__).resolve().parent / "miselect" / "__init__.py"
    match = re.search(
        r"^__version__\s*=\s*[\"']([^\"']+)[\"']",
        version_path.read_text(encoding="utf8"),
        re.MULTILINE,
    )
    if not match:
        raise RuntimeError("Unable to find __version__ in miselect/__init__.py")
    return match.group(1)

with open("README.md", encoding="utf8") as f:
    long_description = f.read()

setup(
    name='miselect',
    version=read_version(),
    description='Variable selection for multiply-imputed data (stacked elastic net, grouped lasso)',
    long_description=long_description,
    long_description_content_type='text/markdown',
    license='MIT',
    packages=find_packages(exclude=("tests*", "docs*", "examples*")),
    python_requires='>=3.8',
    install_requires=[
        'numba',
        'tqdm',
        'joblib',
        'pandas>=1.0.3',
        'numpy>=1.18.1',
        'scikit-learn',
        'scipy',
    ],
    extras_require={
        'test': ['pytest'],
    },
    zip_safe=False
)
