from setuptools import setup, find_packages

setup(
    name="curve_calibration",
    version="0.1.0",
    description="Interest rate curve group calibration engine",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "numpy",
        "pandas",
        "scipy",
    ],
    extras_require={
        "test": ["pytest"],
    },
    python_requires=">=3.8",
)
