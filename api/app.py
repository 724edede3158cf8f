from fastapi import Depends, FastAPI
import uvicorn
from api.routers.system import routes as SystemRoutes
from api.routers.orders import routes as OrderRoutes
from api.routers.agents import routes as AgentRoutes
from api.routers.payouts import routes as PayoutRoutes
from api.security import require_admin


class FastAPIManager:
    def __init__(self):
        # version format: version.subversion:month.year.day:stage (beta, stable)
        self.api = FastAPI(
            version="1.0:10.26.19:beta",
            title="TapOnce fulfillment API",
            description=(
                "Order fulfillment and agent commissions for NFC business cards. "
                "Orders are submitted by agents or directly from the website, approved by an admin "
                "(which provisions the customer's account and public profile) and then moved through "
                "printing, shipping and delivery. Agents earn a flat commission per card and their "
                "recruiter an override share; balances are paid out from the back office. "
                "Admin routes require the X-API-Key header."
            ),
        )
        self.add_routers()

    def add_routers(self):
        self.api.include_router(
            SystemRoutes.router
        )
        self.api.include_router(
            OrderRoutes.router,
            prefix="/orders",
            tags=["Orders"]
        )
        self.api.include_router(
            OrderRoutes.admin_router,
            prefix="/admin/orders",
            dependencies=[Depends(require_admin)],
            tags=["Admin: orders"]
        )
        self.api.include_router(
            AgentRoutes.public_router,
            prefix="/agents",
            tags=["Agents"]
        )
        self.api.include_router(
            AgentRoutes.router,
            prefix="/admin/agents",
            dependencies=[Depends(require_admin)],
            tags=["Admin: agents"]
        )
        self.api.include_router(
            PayoutRoutes.router,
            prefix="/admin/payouts",
            dependencies=[Depends(require_admin)],
            tags=["Admin: payouts"]
        )

    def start_server(self):
        uvicorn.run(self.api, host="0.0.0.0", port=8000)

    def get_app(self) -> FastAPI:
        return self.api
