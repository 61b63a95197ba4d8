import asyncio

from hexserve.common.target import UniTarget, UniProto


class UniConnection:
	def __init__(self, reader:asyncio.StreamReader, writer:asyncio.StreamWriter, buffer_size:int = 65535):
		self.reader = reader
		self.writer = writer
		self.buffer_size = buffer_size
		self.closing = False

	@staticmethod
	async def open(target:UniTarget):
		"""Opens a client connection to the target, wrapping it in TLS for CLIENT_SSL_TCP targets"""
		if target.protocol not in [UniProto.CLIENT_SSL_TCP, UniProto.CLIENT_TCP]:
			raise Exception('Unknown protocol "%s"' % target.protocol)
		ssl_ctx = None
		server_hostname = None
		if target.is_ssl() is True:
			ssl_ctx = target.get_ssl_context()
			server_hostname = target.get_hostname_or_ip()
		reader, writer = await asyncio.open_connection(
			target.get_ip_or_hostname(),
			target.port,
			ssl = ssl_ctx,
			server_hostname = server_hostname,
		)
		return UniConnection(reader, writer)

	def get_extra_info(self, name, default=None):
		return self.writer.get_extra_info(name, default)

	def get_peer_ip(self):
		peer = self.get_extra_info('peername')
		if peer is None:
			return None
		return peer[0]

	async def close(self):
		if self.closing is True:
			return
		self.closing = True
		if self.writer is not None:
			self.writer.close()
			try:
				await self.writer.wait_closed()
			except OSError:
				# peer already gone
				pass

	async def write(self, data:bytes):
		self.writer.write(data)
		await self.writer.drain()

	async def read_one(self) -> bytes:
		"""Returns the next chunk of at most buffer_size bytes, b'' at EOF"""
		if self.closing is True:
			return b''
		return await self.reader.read(self.buffer_size)
