import asyncio

from hexserve.common.target import UniTarget, UniProto
from hexserve.common.connection import UniConnection


class UniServer:
	def __init__(self, target:UniTarget):
		self.target = target
		self.connection_queue = asyncio.Queue()
		self.server:asyncio.AbstractServer = None
		self.listening_evt = asyncio.Event()

	@property
	def bound_port(self) -> int:
		if self.server is None or not self.server.sockets:
			return None
		return self.server.sockets[0].getsockname()[1]

	async def __handle_connection(self, reader, writer):
		connection = UniConnection(reader, writer)
		await self.connection_queue.put(connection)

	async def close(self):
		if self.server is None:
			return
		self.server.close()

	async def wait_closed(self):
		if self.server is None:
			return
		await self.server.wait_closed()

	async def serve(self):
		if self.target.protocol != UniProto.SERVER_TCP:
			raise Exception('Unknown protocol "%s"' % self.target.protocol)
		try:
			self.server = await asyncio.start_server(self.__handle_connection, self.target.get_ip_or_hostname(), self.target.port)
			self.listening_evt.set()
			while self.server.is_serving():
				connection = await self.connection_queue.get()
				yield connection
		finally:
			if self.server is not None:
				self.server.close()
