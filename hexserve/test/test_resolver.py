import os
import shutil
import tempfile
import unittest

from hexserve.errors import TraversalRejected
from hexserve.fileserver.resolver import resolve, is_contained, ResolvedPath


class TestResolver(unittest.TestCase):
	def setUp(self):
		self.tmp = tempfile.mkdtemp()
		self.root = os.path.realpath(os.path.join(self.tmp, 'public'))
		os.makedirs(os.path.join(self.root, 'a', 'b'))

	def tearDown(self):
		shutil.rmtree(self.tmp)

	def test_root_variants(self):
		for path in ['', '/', '.', '/./', '//']:
			resolved, err = resolve(self.root, path)
			self.assertIsNone(err, path)
			self.assertTrue(resolved.is_root)
			self.assertEqual(resolved.relative, '/')

	def test_nested_path(self):
		resolved, err = resolve(self.root, '/a/b/file.txt')
		self.assertIsNone(err)
		self.assertEqual(resolved.path, os.path.join(self.root, 'a', 'b', 'file.txt'))
		self.assertEqual(resolved.relative, '/a/b/file.txt')

	def test_dotdot_inside_root_is_collapsed(self):
		resolved, err = resolve(self.root, '/a/b/../../a')
		self.assertIsNone(err)
		self.assertEqual(resolved.relative, '/a')

	def test_escape_is_rejected(self):
		for path in ['/..', '/../', '/../../etc/passwd', '/a/b/../../../x', '../x']:
			resolved, err = resolve(self.root, path)
			self.assertIsNone(resolved, path)
			self.assertIsInstance(err, TraversalRejected)
			self.assertEqual(err.status_code, 403)
			self.assertEqual(err.to_dict(), {'error' : 'Forbidden', 'message' : 'Access denied'})

	def test_climbing_back_into_root(self):
		# judged on where the path ends up, not on the segments it went through
		resolved, err = resolve(self.root, '/a/../../public/a')
		self.assertIsNone(err)
		self.assertEqual(resolved.relative, '/a')

	def test_sibling_with_common_string_prefix(self):
		# /tmp/x/public-secret shares a string prefix with /tmp/x/public
		resolved, err = resolve(self.root, '/../public-secret/key')
		self.assertIsNone(resolved)
		self.assertIsNotNone(err)
		self.assertFalse(is_contained(self.root, self.root + '-secret'))

	def test_nul_byte_rejected(self):
		resolved, err = resolve(self.root, '/a\x00.txt')
		self.assertIsNone(resolved)
		self.assertIsInstance(err, TraversalRejected)

	def test_idempotent(self):
		for path in ['/a/./b//', '/a/b/../b', 'a/b']:
			first, err = resolve(self.root, path)
			self.assertIsNone(err)
			second, err = resolve(self.root, first.relative)
			self.assertIsNone(err)
			self.assertEqual(first, second)

	def test_parent(self):
		resolved, _ = resolve(self.root, '/a/b')
		self.assertEqual(resolved.parent().relative, '/a')
		self.assertTrue(resolved.parent().parent().is_root)
		self.assertIsNone(ResolvedPath(self.root, self.root).parent())


if __name__ == '__main__':
	unittest.main()
