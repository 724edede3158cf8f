import logging

from api.app import FastAPIManager

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

server_manager = FastAPIManager()
app = server_manager.get_app()

if __name__ == "__main__":
    server_manager.start_server()
