from setuptools import setup, find_packages
import re

VERSIONFILE="hexserve/_version.py"
verstrline = open(VERSIONFILE, "rt").read()
VSRE = r"^__version__ = ['\"]([^'\"]*)['\"]"
mo = re.search(VSRE, verstrline, re.M)
if mo:
    verstr = mo.group(1)
else:
    raise RuntimeError("Unable to find version string in %s." % (VERSIONFILE,))


setup(
	# Application name:
	name="hexserve",

	# Version number (initial):
	version=verstr,

	# Packages
	packages=find_packages(),

	# Include additional files into the package
	include_package_data=True,

	zip_safe = True,
	description="Read-only directory browser with a credential injecting Riot API reverse proxy",
	long_description="",

	python_requires='>=3.10',
	classifiers=[
		"Programming Language :: Python :: 3.10",
		"License :: OSI Approved :: MIT License",
		"Operating System :: OS Independent",
	],
	install_requires=[
		'h11>=0.14.0',
		'aiofiles>=23.2',
		'psutil',
		'python-dotenv',
	],
	extras_require={
		'test': [
			'pytest',
		],
	},
	entry_points={
		'console_scripts': [
			'hexserve = hexserve.__main__:main',
		],
	}
)
