import os
from typing import Tuple

from hexserve.errors import TraversalRejected


class ResolvedPath:
	"""A filesystem path proven to be the serve root or to lie inside it"""
	def __init__(self, serve_root:str, path:str):
		self.serve_root = serve_root
		self.path = path

	@property
	def is_root(self) -> bool:
		return self.path == self.serve_root

	@property
	def relative(self) -> str:
		"""Path below the serve root in URL form, '/' for the root itself"""
		if self.is_root:
			return '/'
		return '/' + os.path.relpath(self.path, self.serve_root).replace(os.sep, '/')

	def parent(self):
		if self.is_root:
			return None
		return ResolvedPath(self.serve_root, os.path.dirname(self.path))

	def __eq__(self, other):
		if not isinstance(other, ResolvedPath):
			return NotImplemented
		return self.serve_root == other.serve_root and self.path == other.path

	def __hash__(self):
		return hash((self.serve_root, self.path))

	def __str__(self):
		return self.path

	def __repr__(self):
		return 'ResolvedPath(%r)' % self.path


def is_contained(serve_root:str, candidate:str) -> bool:
	"""Component-wise containment, so '/srv/pub' never contains '/srv/public'"""
	try:
		return os.path.commonpath([serve_root, candidate]) == serve_root
	except ValueError:
		# mixed absolute/relative or different drives
		return False

def resolve(serve_root:str, request_path:str) -> Tuple[ResolvedPath, TraversalRejected]:
	"""
	Joins an untrusted request path under serve_root and canonicalizes it without touching the filesystem.
	Returns (ResolvedPath, None) on success and (None, TraversalRejected) when the result would
	leave serve_root. serve_root must already be absolute and canonical.
	"""
	if '\x00' in request_path:
		return None, TraversalRejected(request_path)

	# '..' segments are kept relative so they climb out of serve_root instead of being clamped at '/'
	candidate = os.path.normpath(os.path.join(serve_root, request_path.lstrip('/')))
	if not is_contained(serve_root, candidate):
		return None, TraversalRejected(request_path)
	return ResolvedPath(serve_root, candidate), None
