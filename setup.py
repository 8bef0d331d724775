"""Install the SAF auth package."""

from setuptools import setup, find_packages

setup(
    name='saf-auth',
    version='0.1.0',
    packages=find_packages(include=['safauth', 'safauth.*'],
                           exclude=['*tests*']),
    py_modules=['wsgi'],
    python_requires='>=3.8',
    install_requires=[
        "flask",
        "werkzeug",
        "requests",
        "python-dateutil",
        "pytz",
        "python-json-logger",
    ],
    extras_require={
        'test': [
            "pytest",
            "hypothesis",
        ]
    },
    zip_safe=False
)
