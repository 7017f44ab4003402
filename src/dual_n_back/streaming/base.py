from abc import ABC

from pythonosc import udp_client


class BaseStreamer(ABC):
    def __init__(self, ip: str = "127.0.0.1", port: int = 5005):
        self.ip = ip
        self.port = port
        self.client = udp_client.SimpleUDPClient(ip, port)
