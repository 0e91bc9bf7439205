import logging

from chainflow import ExecutionOptions, RunParams, WorkflowResult, create
from chainflow.infrastructure.adapter.in_memory.collaborators import InMemoryCollaborators

TOKEN = "0x833589fcd6edb6e08f4c7c32d4f71b54bda02913"
ROUTER = "0x2626664c2603336e57b271c5c0b26f421741e481"

if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)

    my_workflow = {
        "version": "1.0",
        "steps": [
            {
                "id": "amounts",
                "type": "transform",
                "outputAs": "amounts",
                "transform": {"expression": {"amount": "$.input.amount", "deadline": "$.computed.deadline"}},
            },
            {
                "id": "has-amount",
                "type": "condition",
                "outputAs": "hasAmount",
                "condition": {"expression": "$.input.amount", "onTrue": "approve"},
            },
            {
                "id": "approve",
                "name": "Approve router",
                "type": "onchain",
                "outputAs": "approve",
                "onchain": {
                    "target": "$.input.token",
                    "selector": "0x095ea7b3",
                    "abiFragment": "function approve(address spender, uint256 amount)",
                    "argsMapping": {"spender": "$.input.router", "amount": "$.steps.amounts.output.amount"},
                },
            },
        ],
        "outputMapping": {"tx": "$.steps.approve.output.txHash", "deadline": "$.steps.amounts.output.deadline"},
    }

    collaborators = InMemoryCollaborators(allowed_targets=[TOKEN])
    client = create(collaborators, execution_options=ExecutionOptions())
    params = RunParams(
        wallet="0x" + "11" * 20,
        chain_id=8453,
        session_id="0x" + "22" * 32,
        session_key_address="0x" + "33" * 20,
        input={"token": TOKEN, "router": ROUTER, "amount": "1000000"},
    )
    result: WorkflowResult = client.run_sync(my_workflow, params)

    print("Workflow results:")
    print(result.to_json())
    print("success" if result.success else result.error)
