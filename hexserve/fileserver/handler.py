import os
import stat
import urllib.parse

import aiofiles
import aiofiles.os

from hexserve import logger
from hexserve.server.pipeline import RequestHandler
from hexserve.server.messages import HTTPRequest, ServerResponse
from hexserve.fileserver.resolver import resolve, ResolvedPath
from hexserve.fileserver.listing import list_directory, render_index, link_for


class FileBrowserHandler(RequestHandler):
	"""
	Serves the tree below serve_root under url_prefix.

	Directories (with or without a trailing slash) are answered with an index page,
	files with their raw content as application/json for .json files and text/plain otherwise.
	"""
	def __init__(self, serve_root:str, url_prefix:str = ''):
		self.serve_root = os.path.realpath(serve_root)
		self.url_prefix = url_prefix

	async def handle(self, request:HTTPRequest) -> ServerResponse:
		if request.method not in ('GET', 'HEAD'):
			return None
		sub_path = request.mounted_path(self.url_prefix)
		if sub_path is None:
			return None

		request_path = urllib.parse.unquote(sub_path, errors='surrogateescape')
		resolved, err = resolve(self.serve_root, request_path)
		if err is not None:
			logger.warning('Path traversal attempt blocked', extra={'context': {
				'type' : 'warning',
				'requestPath' : request_path,
				'ip' : request.peer_ip,
				'userAgent' : request.user_agent,
			}})
			return ServerResponse.json(err.status_code, err.to_dict())

		try:
			return await self.respond(resolved)
		except Exception as e:
			ctx = request.log_context()
			ctx['context'] = 'File viewer error'
			logger.exception('Error occurred: %s' % e, extra={'context': ctx})
			return ServerResponse.text(500, 'Internal Server Error')

	async def respond(self, resolved:ResolvedPath) -> ServerResponse:
		try:
			st = await aiofiles.os.stat(resolved.path)
		except (FileNotFoundError, NotADirectoryError):
			return ServerResponse.text(404, 'Not Found')

		if stat.S_ISDIR(st.st_mode):
			return await self.serve_directory(resolved)
		return await self.serve_file(resolved)

	async def serve_directory(self, directory:ResolvedPath) -> ServerResponse:
		entries = await list_directory(directory, self.url_prefix)
		display_path = '/' if directory.is_root else directory.relative + '/'
		parent = directory.parent()
		parent_link = None
		if parent is not None:
			parent_link = link_for(self.url_prefix, parent.relative)
		return ServerResponse.html(200, render_index(display_path, entries, parent_link))

	async def serve_file(self, file:ResolvedPath) -> ServerResponse:
		async with aiofiles.open(file.path, 'rb') as f:
			content = await f.read()

		_, ext = os.path.splitext(file.path)
		if ext.lower() == '.json':
			content_type = 'application/json; charset=utf-8'
		else:
			content_type = 'text/plain; charset=utf-8'
		return ServerResponse(200, [('Content-Type', content_type)], content)
