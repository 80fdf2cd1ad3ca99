"""
Setup configuration for the PPK runner.
"""

from setuptools import setup

setup(
    name="ppk-runner",
    version="1.0.0",
    description="Post-processed kinematic GNSS positioning with RTKLIB",
    package_dir={"": "ppk"},
    py_modules=[
        "batch_solutions",
        "conf_materializer",
        "format_normalizer",
        "input_classifier",
        "merge_base_rinex",
        "ppk_errors",
        "ppk_runner",
        "prepare_session",
        "result_collector",
        "rtklib_tools",
        "solver",
        "workspace",
    ],
    data_files=[("share/ppk", ["ppk/ppk_profiles.yaml"])],
    install_requires=["pyyaml"],
    extras_require={"test": ["pytest"]},
    entry_points={
        "console_scripts": [
            "ppk=ppk_runner:main",
            "ppk-prepare=prepare_session:main",
            "ppk-merge-base=merge_base_rinex:main",
            "ppk-solutions=batch_solutions:main",
        ],
    },
    python_requires=">=3.9",
)
