from . import account, api, assets, dashboard, floor_plan, locations, racks

routers = [
    account.router,
    dashboard.router,
    locations.router,
    racks.router,
    assets.router,
    floor_plan.router,
    api.router,
]
