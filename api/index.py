from mangum import Mangum

from api.main import create_app

app = create_app(root_path="/api")

handler = Mangum(app)
