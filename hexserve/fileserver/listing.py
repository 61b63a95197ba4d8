import os
import html
import stat
import locale
import datetime
import urllib.parse
from decimal import Decimal, ROUND_HALF_UP
from typing import List

import aiofiles.os

from hexserve import logger
from hexserve.fileserver.resolver import ResolvedPath

PLACEHOLDER = '-'
SIZE_UNITS = ['B', 'KB', 'MB', 'GB']


class DirectoryEntry:
	def __init__(self, name:str, is_directory:bool, size:str = PLACEHOLDER, modified:str = PLACEHOLDER, link_path:str = None):
		self.name = name
		self.is_directory = is_directory
		self.size = size
		self.modified = modified
		self.link_path = link_path

	def sort_key(self):
		# case-insensitive first, lowercase before uppercase on ties, whatever LC_COLLATE is
		return (not self.is_directory, locale.strxfrm(self.name.casefold()), locale.strxfrm(self.name.swapcase()))

	def __repr__(self):
		return 'DirectoryEntry(%r, dir=%s, size=%s, modified=%s)' % (self.name, self.is_directory, self.size, self.modified)


def format_file_size(size:int) -> str:
	"""Base-1024 human size with at most two decimals, e.g. 1536 -> '1.5 KB'"""
	if size == 0:
		return '0 B'
	i = 0
	value = float(size)
	while value >= 1024 and i < len(SIZE_UNITS) - 1:
		value /= 1024
		i += 1
	value = Decimal(value).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)
	if value == value.to_integral_value():
		return '%d %s' % (int(value), SIZE_UNITS[i])
	return '%s %s' % (value.normalize(), SIZE_UNITS[i])

def format_mtime(timestamp:float) -> str:
	dt = datetime.datetime.fromtimestamp(timestamp, tz=datetime.timezone.utc)
	return dt.strftime('%Y-%m-%d %H:%M:%S')

def link_for(url_prefix:str, relative:str) -> str:
	return url_prefix + urllib.parse.quote(relative, errors='surrogateescape')

def dirent_is_dir(dirent:os.DirEntry) -> bool:
	"""Directory flag from the listing itself, for children that can't be stat'ed"""
	try:
		return dirent.is_dir(follow_symlinks=False)
	except OSError:
		return False

async def list_directory(directory:ResolvedPath, url_prefix:str = '') -> List[DirectoryEntry]:
	"""
	Direct children of directory, directories first then by name.
	A child that can't be stat'ed is still listed, with placeholder size and date.
	"""
	with await aiofiles.os.scandir(directory.path) as it:
		children = list(it)

	entries = []
	for dirent in children:
		child = ResolvedPath(directory.serve_root, os.path.join(directory.path, dirent.name))
		entry = DirectoryEntry(dirent.name, False, link_path=link_for(url_prefix, child.relative))
		try:
			st = await aiofiles.os.stat(child.path)
		except OSError as e:
			logger.debug('Could not stat %s: %s' % (child.path, e))
			entry.is_directory = dirent_is_dir(dirent)
		else:
			entry.is_directory = stat.S_ISDIR(st.st_mode)
			entry.modified = format_mtime(st.st_mtime)
			if not entry.is_directory:
				entry.size = format_file_size(st.st_size)
		entries.append(entry)

	entries.sort(key=DirectoryEntry.sort_key)
	return entries

def render_index(display_path:str, entries:List[DirectoryEntry], parent_link:str = None) -> str:
	title = html.escape(display_path)
	rows = []
	if parent_link is not None:
		rows.append('<tr><td><a href="%s">../</a></td><td>&nbsp;</td><td align="right">-</td></tr>' % html.escape(parent_link, quote=True))
	for entry in entries:
		rows.append('<tr><td><a href="%s">%s%s</a></td><td align="right">%s</td><td align="right">%s</td></tr>' % (
			html.escape(entry.link_path, quote=True),
			html.escape(entry.name),
			'/' if entry.is_directory else '',
			entry.modified,
			entry.size,
		))

	return '''<!DOCTYPE HTML PUBLIC "-//W3C//DTD HTML 3.2 Final//EN">
<html>
<head>
<title>Index of %s</title>
<style>
table { border-collapse: collapse; }
td { padding: 2px 20px 2px 2px; }
th { padding: 2px 20px 2px 2px; text-align: left; }
</style>
</head>
<body>
<h1>Index of %s</h1>
<table>
<tr><th>Name</th><th>Last modified</th><th>Size</th></tr>
<tr><th colspan="3"><hr></th></tr>
%s
<tr><th colspan="3"><hr></th></tr>
</table>
</body>
</html>''' % (title, title, '\n'.join(rows))
