"""Setup script for the calendar_recurrence package."""

from pathlib import Path

from setuptools import find_packages, setup

# Read the README file
readme_file = Path(__file__).parent / "README.md"
long_description = readme_file.read_text(encoding="utf-8") if readme_file.exists() else ""

# Read requirements, keeping test-only packages separate
requirements_file = Path(__file__).parent / "requirements.txt"
requirements = []
test_requirements = []

if requirements_file.exists():
    content = requirements_file.read_text().strip()
    lines = content.split("\n")

    for line in lines:
        line = line.strip()
        # Skip empty lines and comments
        if not line or line.startswith("#"):
            continue

        if "pytest" in line or "testing" in line.lower():
            test_requirements.append(line)
        else:
            requirements.append(line)

setup(
    name="calendar-recurrence",
    version="0.1.0",
    description="Recurrence rules, occurrence expansion and single-occurrence exceptions for calendar events",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author="Calendar Recurrence Team",
    # Package configuration
    packages=find_packages(include=["calendar_recurrence", "calendar_recurrence.*"]),
    # Dependencies
    install_requires=requirements,
    extras_require={
        "test": test_requirements,
        "dev": test_requirements
        + [
            "black>=23.0.0",
            "isort>=5.12.0",
            "mypy>=1.0.0",
        ],
    },
    # datetime.UTC
    python_requires=">=3.11",
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Office/Business :: Scheduling",
    ],
    keywords="calendar rrule recurrence rfc5545 icalendar occurrences",
    entry_points={
        "console_scripts": [
            "calendar-recurrence=calendar_recurrence.__main__:main",
        ],
    },
    zip_safe=False,
)
