from setuptools import find_packages, setup

setup(
    name="ai-subtitles-client",
    version="1.0.0",
    packages=find_packages(include=["ai_subtitles", "ai_subtitles.*"]),
    package_data={"ai_subtitles.config": ["network_config.json"]},
    install_requires=[line for line in open("requirements-core.txt").read().splitlines() if line],
    extras_require={
        "test": ["pytest>=7.0", "pytest-asyncio>=0.21"],
    },
    python_requires=">=3.10",
    entry_points={
        "console_scripts": [
            "ai-subtitles=ai_subtitles.cli:main",
        ],
    },
)
