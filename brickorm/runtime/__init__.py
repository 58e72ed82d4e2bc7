"""brickORM runtime: execution of compiled statements against DB-API handles."""
