from setuptools import setup, find_packages

setup(
    name="airway_generation",
    version="0.1",
    packages=find_packages(exclude=["tests", "tests.*"]),
    py_modules=["run_generation_labeling"],
    install_requires=[
        'numpy',
        'scipy',
        'networkx',
        'tqdm',
        'vtk'
    ],
    extras_require={
        'test': ['pytest'],
    },
    entry_points={
        'console_scripts': [
            'label-airway-generations=run_generation_labeling:main',
        ],
    },
)
