"""ABI fragments of the carbon credit contract used by the coordinator"""

def _param(name, type_, indexed=None):
    param = {"internalType": type_, "name": name, "type": type_}
    if indexed is not None:
        param["indexed"] = indexed
    return param


REQUEST_STRUCT = {
    "internalType": "struct CarbonCredit.Request[]",
    "name": "",
    "type": "tuple[]",
    "components": [
        _param("id", "uint256"),
        _param("buyer", "address"),
        _param("potentialSeller", "address"),
        _param("amount", "uint256"),
        {"internalType": "enum CarbonCredit.RequestStatus", "name": "status", "type": "uint8"},
    ],
}

# Field order of a Request tuple as returned by getUsersRequest
REQUEST_FIELDS = [c["name"] for c in REQUEST_STRUCT["components"]]

# Field order of the public organizations(address) getter
ORGANIZATION_FIELDS = ["name", "photoIpfsHash", "balance", "isRegistered"]

CARBON_CREDIT_ABI = [
    {
        "type": "function",
        "name": "submitClaim",
        "stateMutability": "nonpayable",
        "inputs": [
            _param("coordinatesX", "int256"),
            _param("coordinatesY", "int256"),
            _param("acres", "uint256"),
            _param("demandedTokens", "uint256"),
            _param("projectDetails", "string"),
            _param("projectName", "string"),
            _param("photoIpfsHashes", "string[]"),
            _param("year", "uint256"),
        ],
        "outputs": [],
    },
    {
        "type": "function",
        "name": "approveClaim",
        "stateMutability": "nonpayable",
        "inputs": [_param("claimId", "uint256"), _param("approvedTokens", "uint256")],
        "outputs": [],
    },
    {
        "type": "function",
        "name": "createRequest",
        "stateMutability": "nonpayable",
        "inputs": [_param("potentialSeller", "address"), _param("amount", "uint256")],
        "outputs": [],
    },
    {
        "type": "function",
        "name": "handleRequest",
        "stateMutability": "nonpayable",
        "inputs": [_param("requestId", "uint256"), _param("approve", "bool")],
        "outputs": [],
    },
    {
        "type": "function",
        "name": "getUsersRequest",
        "stateMutability": "view",
        "inputs": [_param("user", "address")],
        "outputs": [REQUEST_STRUCT],
    },
    {
        "type": "function",
        "name": "organizations",
        "stateMutability": "view",
        "inputs": [_param("", "address")],
        "outputs": [
            _param("name", "string"),
            _param("photoIpfsHash", "string"),
            _param("balance", "uint256"),
            _param("isRegistered", "bool"),
        ],
    },
    {
        "type": "event",
        "name": "ClaimSubmitted",
        "anonymous": False,
        "inputs": [
            _param("claimId", "uint256", indexed=True),
            _param("organization", "address", indexed=True),
            _param("demandedTokens", "uint256", indexed=False),
        ],
    },
    {
        "type": "event",
        "name": "ClaimApproved",
        "anonymous": False,
        "inputs": [
            _param("claimId", "uint256", indexed=True),
            _param("approvedTokens", "uint256", indexed=False),
        ],
    },
    {
        "type": "event",
        "name": "RequestCreated",
        "anonymous": False,
        "inputs": [
            _param("requestId", "uint256", indexed=True),
            _param("buyer", "address", indexed=True),
            _param("potentialSeller", "address", indexed=True),
            _param("amount", "uint256", indexed=False),
        ],
    },
    {
        "type": "event",
        "name": "OrganizationRegistered",
        "anonymous": False,
        "inputs": [
            _param("orgAddress", "address", indexed=True),
            _param("name", "string", indexed=False),
            _param("photoIpfsHash", "string", indexed=False),
            _param("balance", "uint256", indexed=False),
            _param("wallet", "uint256", indexed=False),
        ],
    },
]
