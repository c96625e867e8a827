from setuptools import setup, find_packages

setup(
    name="cs2-stats",
    version="0.1.0",
    description="Stats CS2 pro — collecte HLTV, kills grenade, cartes, API dashboard",
    author="Mathieu Chevalier",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "sqlalchemy>=2.0",
        "typer>=0.15",
        "rich>=13",
        "requests>=2.32",
        "cloudscraper>=1.2.71",
        "beautifulsoup4>=4.12",
        "lxml>=5.3",
        "python-dotenv>=1.0",
        "fastapi>=0.115",
        "uvicorn>=0.30",
    ],
    extras_require={
        "test": [
            "pytest>=8",
            "httpx>=0.28",
        ],
    },
    entry_points={
        "console_scripts": [
            "cs2-stats=cli.main:app",
        ],
    },
    python_requires=">=3.10",
)
