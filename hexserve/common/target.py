import ssl
import enum
import ipaddress


class UniProto(enum.Enum):
	CLIENT_TCP = 1
	CLIENT_SSL_TCP = 2
	SERVER_TCP = 6


class UniTarget:
	def __init__(self, ip:str, port:int, protocol:UniProto, timeout:int=5, ssl_ctx:ssl.SSLContext=None, hostname:str = None):
		self.hostname = hostname
		self.port = port
		self.protocol = protocol
		self.timeout = timeout
		self.ssl_ctx = ssl_ctx

		try:
			ipaddress.ip_address(ip)
			self.ip = ip
		except ValueError:
			if ip is not None:
				self.hostname = ip
			self.ip = None

		if ip is None and hostname is None:
			raise Exception('Both IP and Hostname can\'t be none!')

	def is_ssl(self):
		return self.protocol == UniProto.CLIENT_SSL_TCP

	def get_ssl_context(self):
		if self.ssl_ctx is None:
			self.ssl_ctx = ssl.create_default_context()
		return self.ssl_ctx

	def get_ip_or_hostname(self):
		if self.ip is not None:
			return self.ip
		return self.hostname

	def get_hostname_or_ip(self):
		if self.hostname is not None:
			return self.hostname
		return self.ip

	def __str__(self):
		t = '==== UniTarget ====\r\n'
		for k in self.__dict__:
			t += '%s: %s\r\n' % (k, self.__dict__[k])
		return t
