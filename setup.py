"""Setup configuration for the Aegis Discord automod."""

from setuptools import setup, find_packages

setup(
    name="aegis",
    version="0.0.1",
    description="A Discord bot moderation layer: anti-spam, banned words and warning escalation",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    python_requires=">=3.11",
    install_requires=[
        "py-cord",
        "aiosqlite",
        "PyYAML",
        "python-dotenv",
        "prompt_toolkit",
    ],
    extras_require={
        "test": [
            "pytest",
            "pytest-asyncio",
        ],
    },
    entry_points={
        "console_scripts": [
            "aegis=aegis.main:main",
        ],
    },
)
