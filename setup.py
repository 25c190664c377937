from setuptools import setup, find_packages

package_name = 'klick'

setup(
    name=package_name,
    version='1.0.0',
    packages=find_packages(exclude=['tests', 'tests.*']),
    package_data={
        'config': [
            'shared/*.yaml',
            'algorithms/*.yaml',
            'system/*.yaml',
        ],
    },
    python_requires='>=3.9',
    install_requires=[
        'numpy',
        'opencv-python-headless',
        'structlog',
        'pydantic>=2',
        'PyYAML',
        'psutil',
    ],
    extras_require={
        'test': [
            'pytest',
            'pytest-asyncio',
        ],
    },
    zip_safe=False,
    description='Live composition feedback and background blur engine',
    license='MIT',
)
