from urllib.parse import urlparse

from hexserve.common.target import UniTarget, UniProto


class HTTPTarget(UniTarget):
	def __init__(self, ip, port = 80, protocol = UniProto.CLIENT_TCP, path = None, timeout = 10, hostname:str = None, ssl_ctx = None):
		UniTarget.__init__(self, ip, port, protocol, timeout, hostname = hostname, ssl_ctx = ssl_ctx)
		self.path = path

	def get_host(self):
		if self.protocol == UniProto.CLIENT_SSL_TCP:
			proto = 'https'
		else:
			proto = 'http'
		return '%s://%s' % (proto, self.get_host_header())

	def get_host_header(self):
		"""Value for the Host header, the port is only present when it is not the scheme default"""
		host = self.get_hostname_or_ip()
		if ':' in host:
			host = '[%s]' % host
		if self.protocol == UniProto.CLIENT_SSL_TCP and self.port == 443:
			return host
		if self.protocol == UniProto.CLIENT_TCP and self.port == 80:
			return host
		return '%s:%s' % (host, self.port)

	def get_base_path(self):
		if self.path is None:
			return ''
		return self.path.rstrip('/')

	@staticmethod
	def from_url(connection_url:str, timeout:int = 10, ssl_ctx = None):
		url_e = urlparse(connection_url)
		scheme = url_e.scheme.upper()
		if scheme == 'HTTP':
			protocol = UniProto.CLIENT_TCP
			port = 80
		elif scheme == 'HTTPS':
			protocol = UniProto.CLIENT_SSL_TCP
			port = 443
		else:
			raise Exception('Unknown protocol! %s' % scheme)

		if url_e.hostname is None:
			raise Exception('URL has no host! %s' % connection_url)
		if url_e.port:
			port = url_e.port

		path = None
		if url_e.path not in ['/', '', None]:
			path = url_e.path

		return HTTPTarget(
			url_e.hostname,
			port = port,
			protocol = protocol,
			path = path,
			timeout = timeout,
			ssl_ctx = ssl_ctx,
		)

	def __str__(self):
		t = '==== HTTPTarget ====\r\n'
		for k in self.__dict__:
			t += '%s: %s\r\n' % (k, self.__dict__[k])
		return t
