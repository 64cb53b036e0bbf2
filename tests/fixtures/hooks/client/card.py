import { fmt } from "./util.py"


export default def Card(title="", **props):
    return __jsx__('div', {'className': 'card', 'children': fmt(title)})
